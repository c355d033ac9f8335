"""
Basic HLSKit usage example.

Demonstrates loading a master playlist, picking a quality and downloading
it into a single file.
"""

from hlskit import HLSClient, DownloadSettings

def main():
    client = HLSClient(DownloadSettings(max_concurrency=8))

    # Load master playlist
    print("Loading playlist...")
    master = client.load("https://example.com/hls/master.m3u8")

    if master.is_master:
        print(f"Found {len(master.qualities)} quality variants:")
        for variant in master.qualities:
            print(f"  {variant.display_name}: {variant.url}")

    # Pick a variant and download its media playlist
    media = client.resolve_media_playlist(master, quality="best")
    print(f"\nDownloading {len(media.segments)} segments ({media.total_duration:.0f}s)...")
    result = client.download(media, output_dir="/tmp/hls", output_name="episode")

    print(f"Saved to: {result.output_path}")
    if result.skipped_indices:
        print(f"Skipped segments: {list(result.skipped_indices)}")

if __name__ == "__main__":
    main()
