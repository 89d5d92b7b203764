"""Per-view measurement bookkeeping for one smart factor."""
from typing import List, Sequence, Tuple, Union
import logging

try:
    import gtsam
except Exception:
    gtsam = None

from .exceptions import SizeMismatch
from .models import Key, Measurement, ViewRecord, measurement_equals
from .values import normalize_key

logger = logging.getLogger("smart_stereo.measurements")


def _key_batch(keys, what: str) -> List[Key]:
    # A bare label is iterable too; "x1" must not become ["x", "1"].
    if not isinstance(keys, (list, tuple)):
        raise SizeMismatch(f"A batch of measurements takes a list of {what} keys, got {keys!r}")
    return [normalize_key(k) for k in keys]


class MeasurementSet:
    """Parallel, append-only per-view arrays plus the factor's unique key list.

    Keys are not deduplicated per view: two views may share a body pose or an
    extrinsic. ``keys`` holds each key once, in first-seen order of the
    interleaved (body_0, ext_0, body_1, ext_1, ...) sequence.
    """

    def __init__(self):
        if gtsam is None:
            raise RuntimeError("GTSAM not available; calibrations must be gtsam.Cal3_S2Stereo")
        self._measured: List[Measurement] = []
        self._world_P_body_keys: List[Key] = []
        self._body_P_cam_keys: List[Key] = []
        self._calibrations: List["gtsam.Cal3_S2Stereo"] = []
        self._keys: List[Key] = []

    def add(self,
            measured: Union[Measurement, Sequence[Measurement]],
            world_P_body_key: Union[Key, Sequence[Key]],
            body_P_cam_key: Union[Key, Sequence[Key]],
            calibration: Union["gtsam.Cal3_S2Stereo", Sequence["gtsam.Cal3_S2Stereo"]]) -> None:
        """Add one view, or a batch when ``measured`` is a list/tuple.

        A batch takes key sequences and either one calibration per view or a
        single calibration shared by all of them.
        """
        if not isinstance(measured, (list, tuple)):
            if not isinstance(calibration, gtsam.Cal3_S2Stereo):
                raise SizeMismatch("A single measurement takes exactly one calibration")
            self._append(measured, normalize_key(world_P_body_key),
                         normalize_key(body_P_cam_key), calibration)
            return

        n = len(measured)
        body_keys = _key_batch(world_P_body_key, "body pose")
        cam_keys = _key_batch(body_P_cam_key, "extrinsic")
        if isinstance(calibration, gtsam.Cal3_S2Stereo):
            calibrations = [calibration] * n
        else:
            calibrations = list(calibration)
        if not (len(body_keys) == len(cam_keys) == len(calibrations) == n):
            raise SizeMismatch(
                f"Batch sizes disagree: {n} measurements, {len(body_keys)} body keys, "
                f"{len(cam_keys)} extrinsic keys, {len(calibrations)} calibrations")
        for z, kb, kc, K in zip(measured, body_keys, cam_keys, calibrations):
            self._append(z, kb, kc, K)
        logger.debug("Added batch of %d views (%d unique keys)", n, len(self._keys))

    def _append(self, measured: Measurement, body_key: Key, cam_key: Key, K) -> None:
        self._measured.append(measured)
        self._world_P_body_keys.append(body_key)
        self._body_P_cam_keys.append(cam_key)
        self._calibrations.append(K)
        for key in (body_key, cam_key):
            if key not in self._keys:
                self._keys.append(key)

    @property
    def measured(self) -> Tuple[Measurement, ...]:
        return tuple(self._measured)

    @property
    def world_P_body_keys(self) -> Tuple[Key, ...]:
        return tuple(self._world_P_body_keys)

    @property
    def body_P_cam_keys(self) -> Tuple[Key, ...]:
        return tuple(self._body_P_cam_keys)

    @property
    def calibrations(self) -> Tuple["gtsam.Cal3_S2Stereo", ...]:
        return tuple(self._calibrations)

    @property
    def keys(self) -> Tuple[Key, ...]:
        return tuple(self._keys)

    def views(self) -> List[ViewRecord]:
        return [ViewRecord(z, kb, kc, K) for z, kb, kc, K in
                zip(self._measured, self._world_P_body_keys, self._body_P_cam_keys, self._calibrations)]

    def check_consistent(self) -> None:
        n = len(self._measured)
        if not (len(self._world_P_body_keys) == len(self._body_P_cam_keys) == len(self._calibrations) == n):
            raise SizeMismatch("Per-view arrays have inconsistent lengths")

    def equals(self, other: "MeasurementSet", tol: float = 1e-9) -> bool:
        if len(self) != len(other):
            return False
        if self.world_P_body_keys != other.world_P_body_keys or self.body_P_cam_keys != other.body_P_cam_keys:
            return False
        for a, b in zip(self._measured, other._measured):
            if not measurement_equals(a, b, tol):
                return False
        return all(Ka.equals(Kb, tol) for Ka, Kb in zip(self._calibrations, other._calibrations))

    def __len__(self) -> int:
        return len(self._measured)
