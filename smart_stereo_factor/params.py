from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Union

from .exceptions import UnsupportedMode
from .triangulation import TriangulationParameters


class LinearizationMode(Enum):
    """Closed set of linear factor types the smart factor can produce."""
    HESSIAN = "hessian"


def parse_linearization_mode(mode: Union[str, LinearizationMode]) -> LinearizationMode:
    if isinstance(mode, LinearizationMode):
        return mode
    try:
        return LinearizationMode(str(mode).lower())
    except ValueError:
        raise UnsupportedMode(f"Unsupported linearization mode: {mode!r}") from None


@dataclass
class SmartStereoProjectionParams:
    linearization_mode: LinearizationMode = LinearizationMode.HESSIAN
    # Levenberg-Marquardt damping applied to the landmark block before elimination.
    damping: float = 0.0
    diagonal_damping: bool = False
    triangulation: TriangulationParameters = field(default_factory=TriangulationParameters)
    throw_cheirality: bool = False
    verbose_cheirality: bool = False

    def __post_init__(self):
        self.linearization_mode = parse_linearization_mode(self.linearization_mode)
        if self.damping < 0.0:
            raise ValueError(f"damping must be non-negative, got {self.damping}")
        if isinstance(self.triangulation, dict):
            self.triangulation = TriangulationParameters(**self.triangulation)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SmartStereoProjectionParams":
        config_dict = dict(config_dict)
        triangulation = TriangulationParameters(**config_dict.pop("triangulation", {}))
        return cls(triangulation=triangulation, **config_dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "linearization_mode": self.linearization_mode.value,
            "damping": self.damping,
            "diagonal_damping": self.diagonal_damping,
            "triangulation": asdict(self.triangulation),
            "throw_cheirality": self.throw_cheirality,
            "verbose_cheirality": self.verbose_cheirality,
        }
