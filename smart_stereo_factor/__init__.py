"""smart_stereo_factor: smart stereo projection factor on body poses and extrinsics.

This package provides:
- Stereo camera helpers over gtsam (Pose3 composition and StereoCamera
  projection with Jacobians)
- A measurement set for per-view stereo observations
- Landmark triangulation (gtsam DLT, optional refinement)
- Linearization, Schur-complement elimination of the landmark, and
  collapsing of shared body/extrinsic keys
- An immutable Hessian factor as output

Design intent:
Each stage is a small class with a narrow contract so the triangulator
can be swapped while the elimination pipeline stays the same.
"""
__all__ = [
    "cameras", "collapse", "exceptions", "factor", "geometry", "hessian",
    "linearization", "measurements", "models", "noise", "params", "schur",
    "triangulation", "values",
]
__version__ = "0.1.0"
