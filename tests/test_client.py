import pytest

from hlskit.client import HLSClient
from hlskit.exceptions import PlaylistError, VariantNotFound
from hlskit.models import DownloadConfig, DownloadSettings, QualityVariant
from hlskit.playlist import select_variant, sort_by_bandwidth

from conftest import media_playlist

MASTER_URL = "http://cdn.example.com/show/master.m3u8"
MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
low/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2500000,RESOLUTION=1280x720
mid/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080
high/index.m3u8
"""


def serve_variant(session, name, body):
    base = f"http://cdn.example.com/show/{name}/"
    session.add(base + "index.m3u8", media_playlist(["a.ts", "b.ts"]))
    session.add(base + "a.ts", body + b"-a")
    session.add(base + "b.ts", body + b"-b")


def test_master_to_media_to_file(session, settings, tmp_path):
    session.add(MASTER_URL, MASTER)
    serve_variant(session, "mid", b"mid")
    client = HLSClient(settings=settings, session=session)

    result = client.download(MASTER_URL, str(tmp_path), "show", quality="720p")

    assert not result.is_live
    with open(result.output_path, "rb") as f:
        assert f.read() == b"mid-amid-b"


def test_best_quality_by_default(session, settings, tmp_path):
    session.add(MASTER_URL, MASTER)
    serve_variant(session, "high", b"high")
    client = HLSClient(settings=settings, session=session)

    master = client.load(MASTER_URL)
    media = client.resolve_media_playlist(master)

    assert media.source_url == "http://cdn.example.com/show/high/index.m3u8"
    assert media.segments[0].url == "http://cdn.example.com/show/high/a.ts"


def test_variant_pointing_to_master_is_rejected(session, settings):
    session.add(MASTER_URL, MASTER)
    session.add("http://cdn.example.com/show/low/index.m3u8", MASTER)
    client = HLSClient(settings=settings, session=session)

    with pytest.raises(PlaylistError):
        client.resolve_media_playlist(client.load(MASTER_URL), "worst")


def test_analyze_skips_bad_and_duplicate_candidates(session, settings):
    session.add(MASTER_URL, MASTER)
    session.add("http://cdn.example.com/page.html", "<html></html>")
    client = HLSClient(settings=settings, session=session)

    playlists = client.analyze([
        "http://cdn.example.com/page.html",
        MASTER_URL,
        "http://cdn.example.com/missing.m3u8",
        MASTER_URL,
        "",
    ])

    assert [p.source_url for p in playlists] == [MASTER_URL]
    assert session.count(MASTER_URL) == 1


def test_download_from_config_uses_config_settings(session, tmp_path):
    session.add(MASTER_URL, MASTER)
    serve_variant(session, "low", b"low")
    config = DownloadConfig(
        url=MASTER_URL,
        output_dir=str(tmp_path),
        output_name="cfg",
        quality="worst",
        settings=DownloadSettings(max_concurrency=2, retry_base_delay_ms=0, merger="concat"),
    )

    result = HLSClient(session=session).download_from_config(config)

    assert result.output_path.endswith("cfg.ts")
    with open(result.output_path, "rb") as f:
        assert f.read() == b"low-alow-b"


def test_live_playlist_is_recorded(session, settings, tmp_path):
    url = "http://cdn.example.com/live/index.m3u8"
    session.add(url, media_playlist(["a.ts"], ended=False), media_playlist(["a.ts", "b.ts"], ended=True))
    session.add("http://cdn.example.com/live/a.ts", b"A")
    session.add("http://cdn.example.com/live/b.ts", b"B")
    settings.poll_interval = 0.01

    result = HLSClient(settings=settings, session=session).download(url, str(tmp_path), "live")

    assert result.is_live
    with open(result.output_path, "rb") as f:
        assert f.read() == b"B"
    assert session.count("http://cdn.example.com/live/a.ts") == 0


def test_settings_from_dict_and_validation():
    settings = DownloadSettings.from_dict({"max_concurrency": 4, "retry_base_delay_ms": 1500, "bogus": 1})
    assert settings.max_concurrency == 4
    assert settings.retry_base_delay == 1.5
    with pytest.raises(ValueError):
        DownloadSettings(max_concurrency=0)
    with pytest.raises(ValueError):
        DownloadSettings(max_retries=-1)


QUALITIES = (
    QualityVariant(800000, "low.m3u8", "640x360"),
    QualityVariant(5000000, "high.m3u8", "1920x1080"),
    QualityVariant(2500000, "mid.m3u8", "1280x720"),
)


@pytest.mark.parametrize("preference, expected", [
    ("best", "high.m3u8"),
    ("auto", "high.m3u8"),
    ("worst", "low.m3u8"),
    ("720p", "mid.m3u8"),
    ("1920x1080", "high.m3u8"),
    (0, "low.m3u8"),
    (-1, "mid.m3u8"),
])
def test_select_variant(preference, expected):
    assert select_variant(QUALITIES, preference).url == expected


@pytest.mark.parametrize("preference", ["480p", "4000x3000", "medium", 7])
def test_select_variant_no_match(preference):
    with pytest.raises(VariantNotFound):
        select_variant(QUALITIES, preference)


def test_select_variant_empty():
    with pytest.raises(VariantNotFound):
        select_variant((), "best")


def test_sort_by_bandwidth():
    assert [q.bandwidth for q in sort_by_bandwidth(QUALITIES)] == [5000000, 2500000, 800000]
