"""pyfetransfer.config
Options passed explicitly to the transfer classes.
"""
from dataclasses import dataclass, field, replace
from enum import Enum


class OperatorType(Enum):
    """Storage requested for the forward/backward operators."""
    ANY_TYPE = "any"            # matrix-free action
    SPARSE_MATRIX = "sparse"    # assembled scipy.sparse CSR


@dataclass(frozen=True)
class SolverOptions:
    rel_tol: float = 1e-13
    abs_tol: float = 1e-13
    max_iter: int = 1000
    print_level: int = 0


@dataclass(frozen=True)
class TransferOptions:
    oper_type: OperatorType = OperatorType.ANY_TYPE
    force_l2_space: bool = False
    kernel: str = "auto"            # 'auto' | 'generic' | 'tensor'
    preconditioner: str = "auto"    # 'auto' | 'jacobi' | 'amg'
    solver: SolverOptions = field(default_factory=SolverOptions)

    def __post_init__(self):
        if self.kernel not in ("auto", "generic", "tensor"):
            raise ValueError(f"Unknown kernel selection '{self.kernel}'.")
        if self.preconditioner not in ("auto", "jacobi", "amg"):
            raise ValueError(f"Unknown preconditioner '{self.preconditioner}'.")

    def replace(self, **changes) -> "TransferOptions":
        return replace(self, **changes)
