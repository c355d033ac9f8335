"""
Live stream recording example.

Records a live HLS stream for a fixed amount of time while a background
thread prints progress.

Pipeline:
1. Load the master playlist and pick a variant
2. Poll the live media playlist for new segments
3. Stop after max_duration_seconds (or when Enter is pressed)
4. Merge everything recorded into one file
"""

import logging
import threading

from hlskit import HLSClient, LiveStreamRecorder, ProgressChannel, SegmentDownloader

# Configure logging to see hlskit internal logs
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

def report(channel):
    for snapshot in channel:
        print(f"[{snapshot.phase.value}] {snapshot.downloaded_segments}/{snapshot.total_segments}")

def main():
    live_url = "https://example.com/live/master.m3u8"
    record_seconds = 120

    client = HLSClient()
    media = client.resolve_media_playlist(client.load(live_url), quality="720p")
    if not media.is_live:
        print("Playlist has #EXT-X-ENDLIST, use basic_usage.py for VOD content")
        return

    channel = ProgressChannel()
    threading.Thread(target=report, args=(channel,), daemon=True).start()

    downloader = SegmentDownloader(session=client.session, settings=client.settings)
    recorder = LiveStreamRecorder(downloader, progress=channel)
    # Stop gracefully (merging what was captured) if the user presses Enter
    threading.Thread(target=lambda: (input(), recorder.stop()), daemon=True).start()

    print(f"Recording for {record_seconds}s, press Enter to stop early...")
    result = recorder.record(
        media,
        "local/live",
        output_name="live_capture",
        max_duration_seconds=record_seconds,
    )

    print(f"\nRecorded {result.segment_count} segments to {result.output_path}")
    print(f"Recorder state: {recorder.state.value}")

if __name__ == "__main__":
    main()
