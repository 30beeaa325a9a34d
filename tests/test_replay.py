"""Recording replay script."""
import json

import numpy as np

import replay_landmarks


def test_json_replay_runs_to_completion(tmp_path, face):
    frames = [{"timestamp_ms": i * 33.3, "landmarks": face().tolist()} for i in range(8)]
    frames += [{"timestamp_ms": (8 + i) * 33.3, "landmarks": None} for i in range(3)]
    recording = tmp_path / "rec.json"
    recording.write_text(
        json.dumps({"frame_width": 1280, "frame_height": 720, "frames": frames}),
        encoding="utf-8",
    )
    output = tmp_path / "telemetry.jsonl"

    assert replay_landmarks.main(["--recording", str(recording), "--output", str(output)]) == 0

    records = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 11
    assert records[7]["fresh"] is True
    assert records[-1]["fresh"] is False


def test_npz_recording_marks_nan_frames_missing(tmp_path, face):
    landmarks = np.stack([face(), np.full((468, 3), np.nan), face()])
    path = tmp_path / "rec.npz"
    np.savez(path, landmarks=landmarks, frame_size=np.array([1280, 720]), fps=np.array(30.0))

    (width, height), frames = replay_landmarks.load_recording(path)
    assert (width, height) == (1280, 720)
    assert [points is None for _, points in frames] == [False, True, False]
    assert frames[1][0] == np.float64(1000.0 / 30.0)


def test_missing_recording_fails_cleanly(tmp_path):
    assert replay_landmarks.main(["--recording", str(tmp_path / "missing.json")]) == 1
