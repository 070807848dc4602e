import math
from typing import Optional

from ecosort_pipeline.ep_types import (
    AnalysisResult,
    CaptureCandidate,
    DetectionSnapshot,
    area_percentage,
)
from ecosort_pipeline.errors import NoCandidateError, NoCandidateReason

DISPLAY_AREA_PCT = 0.5
CAPTURE_AREA_PCT = 1.0
DISPLAY_LABEL = "Object Detected"


def score_object(area_pct: float, distance: float) -> float:
    return area_pct - distance / 100.0


class CandidateSelector:
    def __init__(self, display_area_pct: float = DISPLAY_AREA_PCT, capture_area_pct: float = CAPTURE_AREA_PCT):
        self.display_area_pct = display_area_pct
        self.capture_area_pct = capture_area_pct

    def candidates(self, snapshot: DetectionSnapshot) -> list[CaptureCandidate]:
        """Capture-eligible objects with their scores, in input order."""
        fw, fh = snapshot.frame_width, snapshot.frame_height
        cx, cy = fw / 2.0, fh / 2.0
        out = []
        for obj in snapshot.objects:
            if not obj.is_valid():
                continue
            pct = area_percentage(obj.bounding_box, fw, fh)
            if pct < self.capture_area_pct:
                continue
            bx, by = obj.bounding_box.center
            dist = math.hypot(bx - cx, by - cy)
            out.append(CaptureCandidate(obj, pct, dist, score_object(pct, dist)))
        return out

    def select(self, snapshot: Optional[DetectionSnapshot], stale: bool = False) -> CaptureCandidate:
        """
        Pick the best capture candidate.

        Highest score wins; ties go to the earliest object in the snapshot.
        Raises NoCandidateError with STALE when nothing was detected recently,
        NOT_PROMINENT when objects exist but none is large/centred enough.
        """
        if snapshot is None or not snapshot.has_objects:
            reason = NoCandidateReason.STALE if stale else NoCandidateReason.NOT_PROMINENT
            raise NoCandidateError(reason)

        best = None
        for cand in self.candidates(snapshot):
            if best is None or cand.score > best.score:
                best = cand
        if best is None:
            raise NoCandidateError(NoCandidateReason.NOT_PROMINENT)
        return best

    def display_results(self, snapshot: Optional[DetectionSnapshot]) -> list[AnalysisResult]:
        if snapshot is None:
            return []
        fw, fh = snapshot.frame_width, snapshot.frame_height
        results = []
        for obj in snapshot.objects:
            if not obj.is_valid():
                continue
            pct = area_percentage(obj.bounding_box, fw, fh)
            if pct < self.display_area_pct:
                continue
            label = obj.primary_label(DISPLAY_LABEL)
            results.append(AnalysisResult(obj.bounding_box, label, pct, obj.confidence))
        return results
