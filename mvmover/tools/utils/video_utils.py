import json
import logging
import os

from overrides import override
from typing import Dict, List, Tuple

from . import generic_utils, process_utils
from .data_structs import StreamPlan


def get_video_full_info_mkvmerge(path: str) -> dict:
    """Return file information using ``mkvmerge -J``."""

    result = process_utils.start_process("mkvmerge", ["-J", path])

    if result.returncode != 0:
        raise RuntimeError(f"mkvmerge exited with unexpected error:\n{result.stderr}")

    return json.loads(result.stdout)


def get_track_ids(path: str) -> Dict[str, List[int]]:
    """Return ids of tracks in ``path`` grouped by track type ('video', 'audio', 'subtitles')."""

    info = get_video_full_info_mkvmerge(path)

    tracks: Dict[str, List[int]] = {}
    for track in info.get("tracks", []):
        tracks.setdefault(track.get("type"), []).append(track.get("id"))

    return tracks


class MuxingEngine:
    """
        Combines inputs described by a StreamPlan into one container file.
    """

    container = "mkv"

    def mux(self, plan: StreamPlan, output_path: str, should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> None:
        """
            Write 'output_path'. Raises RuntimeError on failure and
            generic_utils.OperationCancelled when 'should_stop' turned true.
        """
        raise NotImplementedError()


class MkvMergeEngine(MuxingEngine):
    def __init__(self, show_progress: bool = False) -> None:
        self.show_progress = show_progress

    @staticmethod
    def _first(tracks: Dict[str, List[int]], track_type: str) -> int | None:
        ids = tracks.get(track_type, [])
        return ids[0] if ids else None

    def build_options(self, plan: StreamPlan, output_path: str) -> List[str]:
        options = ["-o", output_path]
        track_order: List[Tuple[int, int]] = []

        primary_tracks = get_track_ids(plan.video)
        video_tid = self._first(primary_tracks, "video")
        if video_tid is None:
            raise RuntimeError(f"No video track found in {plan.video}")

        # audio streams come either from the primary file or from auxiliary files
        primary_audio = [a for a in plan.audio if a.path == plan.video]
        auxiliary_audio = [a for a in plan.audio if a.path != plan.video]

        options.extend(["--video-tracks", str(video_tid), "--no-subtitles", "--no-attachments"])
        track_order.append((0, video_tid))

        audio_tid = self._first(primary_tracks, "audio")
        if primary_audio and audio_tid is not None:
            audio = primary_audio[0]
            options.extend(["--audio-tracks", str(audio_tid)])
            options.extend(self._audio_options(audio_tid, audio.language, audio.default, audio.visual_impaired, audio.name))
            track_order.append((0, audio_tid))
        else:
            options.append("--no-audio")

        options.append(plan.video)

        file_id = 1
        for audio in auxiliary_audio:
            audio_tid = self._first(get_track_ids(audio.path), "audio")
            if audio_tid is None:
                raise RuntimeError(f"No audio track found in {audio.path}")

            options.extend(["--no-video", "--no-subtitles", "--no-attachments", "--no-chapters"])
            options.extend(["--audio-tracks", str(audio_tid)])
            options.extend(self._audio_options(audio_tid, audio.language, audio.default, audio.visual_impaired, audio.name))
            options.append(audio.path)
            track_order.append((file_id, audio_tid))
            file_id += 1

        for subtitle in plan.subtitles:
            options.extend(["--language", f"0:{subtitle.language}"])
            options.extend(["--default-track", "0:yes" if subtitle.default else "0:no"])
            if subtitle.name:
                options.extend(["--track-name", f"0:{subtitle.name}"])

            options.append(subtitle.path)
            track_order.append((file_id, 0))
            file_id += 1

        options.extend(["--track-order", ",".join(f"{fid}:{tid}" for fid, tid in track_order)])

        return options

    @staticmethod
    def _audio_options(tid: int, language: str, default: bool, visual_impaired: bool, name: str | None) -> List[str]:
        options = ["--language", f"{tid}:{language}"]
        options.extend(["--default-track", f"{tid}:yes" if default else f"{tid}:no"])

        if visual_impaired:
            options.extend(["--visual-impaired-flag", f"{tid}:yes"])

        if name:
            options.extend(["--track-name", f"{tid}:{name}"])

        return options

    @override
    def mux(self, plan: StreamPlan, output_path: str, should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> None:
        options = self.build_options(plan, output_path)

        cmd = "mkvmerge"
        result = process_utils.start_process(cmd, options, show_progress=self.show_progress, should_stop=should_stop)

        # mkvmerge: 0 - success, 1 - success with warnings, 2 - error
        if result.returncode not in [0, 1]:
            if os.path.exists(output_path):
                os.remove(output_path)
            raise RuntimeError(f"{cmd} exited with unexpected error:\n{result.stderr}\n\nAnd output: {result.stdout}")

        if result.returncode == 1:
            logging.warning(f"{cmd} reported warnings:\n{result.stdout}")

        if not os.path.exists(output_path):
            logging.error("Output file was not created")
            raise RuntimeError(f"{cmd} did not create output file")
