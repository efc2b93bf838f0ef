# tools/wav_signature.py
"""
Print the recognition signature of a WAV file.

    python tools/wav_signature.py --wav capture.wav
    python tools/wav_signature.py --wav capture.wav --json

The WAV must be mono PCM16; any sample rate is resampled to 16 kHz.
"""
from __future__ import annotations

import argparse
import json
import sys
import wave
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))

from audio.formats import RawAudio  # pylint: disable=wrong-import-position
from config import AppConfig  # pylint: disable=wrong-import-position
from observability.logger import configure_output  # pylint: disable=wrong-import-position
from recognition.pipeline import generate_signature  # pylint: disable=wrong-import-position


def read_wav(path: str) -> RawAudio:
    with wave.open(path, "rb") as wf:
        sr = wf.getframerate()
        sw = wf.getsampwidth()
        ch = wf.getnchannels()

        if sw != 2 or ch != 1:
            raise RuntimeError(
                f"WAV must be mono PCM16. Got sampwidth={sw}, channels={ch}"
            )

        pcm = wf.readframes(wf.getnframes())

    return RawAudio(data=pcm, channel_count=ch, sample_rate=sr)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--wav", required=True, help="Path to a mono PCM16 WAV")
    ap.add_argument("--json", action="store_true", help="Print uri, duration and peak count as JSON.")
    args = ap.parse_args(argv)

    config = AppConfig.load_from_env()
    configure_output(enabled=config.enable_json_logs, to_stderr=True)

    try:
        raw = read_wav(args.wav)
    except (RuntimeError, wave.Error) as exc:
        print(f"[signature] {exc}", file=sys.stderr)
        return 2

    result = generate_signature(raw, chunk_bytes=config.resample_chunk_bytes)

    if args.json:
        print(json.dumps({
            "uri": result.uri,
            "sample_duration_ms": result.sample_duration_ms,
            "peak_count": result.peak_count,
        }))
    else:
        print(result.uri)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
