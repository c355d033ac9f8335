import pytest

from hlskit.exceptions import FormatError
from hlskit.playlist import M3U8Parser, is_hls_playlist, parse_attributes, parse_playlist

from conftest import media_playlist

MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1280000,RESOLUTION=1280x720,CODECS="avc1.64001f,mp4a.40.2"
http://example.com/720p.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2560000,RESOLUTION=1920x1080,CODECS="avc1.640028,mp4a.40.2"
http://example.com/1080p.m3u8
"""


def test_master_playlist_variants_in_source_order():
    playlist = M3U8Parser().parse(MASTER, "http://example.com/master.m3u8")

    assert playlist.is_master
    assert playlist.segments == ()
    assert len(playlist.qualities) == 2

    first, second = playlist.qualities
    assert first.bandwidth == 1280000
    assert first.resolution == "1280x720"
    assert first.codecs == "avc1.64001f,mp4a.40.2"
    assert first.url == "http://example.com/720p.m3u8"
    assert second.bandwidth == 2560000
    assert second.resolution == "1920x1080"
    assert second.url == "http://example.com/1080p.m3u8"


def test_single_variant_master():
    content = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1280000,RESOLUTION=1280x720\nhttp://x/720.m3u8\n"
    playlist = parse_playlist(content, "http://x/master.m3u8")

    assert playlist.is_master
    assert len(playlist.qualities) == 1
    variant = playlist.qualities[0]
    assert variant.bandwidth == 1280000
    assert variant.resolution == "1280x720"
    assert variant.codecs is None
    assert variant.url == "http://x/720.m3u8"


def test_master_relative_variant_urls_are_resolved():
    content = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=500000\nlow/index.m3u8\n"
    playlist = parse_playlist(content, "https://cdn.example.com/show/master.m3u8")
    assert playlist.qualities[0].url == "https://cdn.example.com/show/low/index.m3u8"


def test_master_variant_without_url_line_is_skipped():
    content = (
        "#EXTM3U\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=100\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=200\n"
        "b.m3u8\n"
        "#EXT-X-STREAM-INF:BANDWIDTH=300\n"
    )
    playlist = parse_playlist(content, "http://x/master.m3u8")
    assert [q.bandwidth for q in playlist.qualities] == [200]


def test_media_playlist_segments():
    content = media_playlist(["http://example.com/segment1.ts", "http://example.com/segment2.ts",
                              "http://example.com/segment3.ts"], duration=9.009, target=10)
    playlist = parse_playlist(content, "http://example.com/playlist.m3u8")

    assert not playlist.is_master
    assert not playlist.is_live
    assert playlist.qualities == ()
    assert playlist.target_duration == 10
    assert playlist.version == 3
    assert len(playlist.segments) == 3
    assert playlist.segments[0].url == "http://example.com/segment1.ts"
    assert playlist.segments[0].duration == pytest.approx(9.009)
    assert [s.sequence_number for s in playlist.segments] == [0, 1, 2]


def test_live_playlist_without_endlist():
    content = "#EXTM3U\n" + "".join("#EXTINF:9.009,\nseg%d.ts\n" % i for i in range(3))
    playlist = parse_playlist(content, "http://example.com/live.m3u8")

    assert playlist.is_live
    assert len(playlist.segments) == 3
    assert [s.sequence_number for s in playlist.segments] == [0, 1, 2]


@pytest.mark.parametrize("media_sequence", [0, 7, 1234])
def test_sequence_numbers_start_at_media_sequence(media_sequence):
    content = media_playlist(["a.ts", "b.ts", "c.ts", "d.ts"], media_sequence=media_sequence, ended=False)
    playlist = parse_playlist(content, "http://example.com/live.m3u8")
    assert [s.sequence_number for s in playlist.segments] == [media_sequence + i for i in range(4)]
    assert playlist.is_live


def test_endlist_anywhere_marks_vod():
    content = "#EXTM3U\n#EXT-X-ENDLIST\n#EXTINF:4,\na.ts\n"
    assert not parse_playlist(content, "http://x/p.m3u8").is_live


def test_encrypted_playlist_key_and_iv():
    content = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-KEY:METHOD=AES-128,URI="key.php",IV=0x1234567890abcdef1234567890abcdef
#EXTINF:9.009,
segment1.ts
#EXTINF:9.009,
segment2.ts"""
    playlist = parse_playlist(content, "http://example.com/playlist.m3u8")

    assert playlist.encryption_keys == {"http://example.com/key.php": b""}
    for segment in playlist.segments:
        assert segment.encryption_key_url == "http://example.com/key.php"
        assert segment.encryption_iv == "1234567890abcdef1234567890abcdef"
        assert segment.is_encrypted


def test_key_rotation_and_method_none():
    content = """#EXTM3U
#EXTINF:4,
clear.ts
#EXT-X-KEY:METHOD=AES-128,URI="k1.key",IV=0XABCD
#EXTINF:4,
a.ts
#EXT-X-KEY:METHOD=AES-128,URI="k2.key"
#EXTINF:4,
b.ts
#EXT-X-KEY:METHOD=AES-128,URI="k1.key"
#EXTINF:4,
c.ts
#EXT-X-KEY:METHOD=NONE
#EXTINF:4,
d.ts
"""
    playlist = parse_playlist(content, "http://x/p/index.m3u8")
    clear, a, b, c, d = playlist.segments

    assert clear.encryption_key_url is None
    assert a.encryption_key_url == "http://x/p/k1.key"
    assert a.encryption_iv == "abcd"
    assert b.encryption_key_url == "http://x/p/k2.key"
    assert b.encryption_iv is None
    assert c.encryption_key_url == "http://x/p/k1.key"
    assert d.encryption_key_url is None
    assert list(playlist.encryption_keys) == ["http://x/p/k1.key", "http://x/p/k2.key"]


def test_duration_persists_and_unknown_tags_are_ignored():
    content = """#EXTM3U
#EXT-X-PROGRAM-DATE-TIME:2024-01-15T10:30:00.000Z
#EXTINF:5.5,title
a.ts
#EXT-X-DISCONTINUITY
b.ts
"""
    playlist = parse_playlist(content, "http://x/p.m3u8")
    assert [s.duration for s in playlist.segments] == [5.5, 5.5]


@pytest.mark.parametrize("content", ["", "#INVALID", "#EXTM3", "\n\n  \n", "segment.ts\n#EXTM3U"])
def test_invalid_playlist_raises_format_error(content):
    with pytest.raises(FormatError):
        parse_playlist(content, "http://example.com/invalid.m3u8")


def test_header_after_blank_lines_and_bom():
    content = "\ufeff\n\n  #EXTM3U  \r\n#EXTINF:2,\r\na.ts\r\n"
    playlist = parse_playlist(content, "http://x/p.m3u8")
    assert playlist.segments[0].url == "http://x/a.ts"
    assert is_hls_playlist(content)


def test_reparse_is_structurally_equal():
    content = MASTER + "\n"
    assert parse_playlist(content, "http://example.com/m.m3u8") == parse_playlist(content, "http://example.com/m.m3u8")
    media = media_playlist(["a.ts", "b.ts"], media_sequence=3, ended=False)
    assert parse_playlist(media, "http://x/l.m3u8") == parse_playlist(media, "http://x/l.m3u8")


def test_parse_attributes_quoted_and_bare_values():
    attributes = parse_attributes(
        '#EXT-X-STREAM-INF:BANDWIDTH=2560000, RESOLUTION=1920x1080,CODECS="avc1.640028,mp4a.40.2",NAME="a=b"'
    )
    assert attributes == {
        "BANDWIDTH": "2560000",
        "RESOLUTION": "1920x1080",
        "CODECS": "avc1.640028,mp4a.40.2",
        "NAME": "a=b",
    }


def test_parse_attributes_unterminated_quote_truncates():
    attributes = parse_attributes('#EXT-X-KEY:METHOD=AES-128,URI="key.php,IV=0x01')
    assert attributes == {"METHOD": "AES-128"}


def test_parse_attributes_without_colon():
    assert parse_attributes("#EXT-X-ENDLIST") == {}


def test_quality_display_name():
    playlist = parse_playlist(MASTER, "http://example.com/master.m3u8")
    assert playlist.qualities[0].display_name == "720p (1.3 Mbps)"
    assert playlist.qualities[1].display_name == "1080p (2.6 Mbps)"

    audio = parse_playlist(
        '#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=128000,CODECS="mp4a.40.2"\naudio.m3u8\n', "http://x/m.m3u8"
    ).qualities[0]
    assert audio.display_name == "128 kbps"


def test_playlist_is_hashable_and_key_map_read_only():
    content = '#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="k.key"\n#EXTINF:4,\na.ts\n#EXTINF:4,\nb.ts\n'
    playlist = parse_playlist(content, "http://x/p/index.m3u8")
    tail = playlist.with_segments(playlist.segments[1:])

    assert hash(playlist) == hash(parse_playlist(content, "http://x/p/index.m3u8"))
    with pytest.raises(TypeError):
        playlist.encryption_keys["http://x/p/other.key"] = b""
    assert dict(tail.encryption_keys) == {"http://x/p/k.key": b""}
    assert tail.segments == (playlist.segments[1],)
