from .operator import Operator, IdentityOperator, TransferKind
from .patch import PatchMap, build_ho2lor
from .mixed_mass import elem_mixed_mass
from .l2_base import L2Projection, L2Prolongation
from .l2_local import L2ProjectionL2Space
from .l2_global import L2ProjectionH1Space
from .interpolation import (RefinementOperator, DerefinementOperator,
                            refinement_matrix, local_refinement_matrices)
from .prefinement import (PRefinementTransferOperator, TensorProductPRefinementTransferOperator,
                          TransferOperator)
from .true_transfer import TrueTransferOperator
from .grid_transfer import (GridTransfer, InterpolationGridTransfer, L2ProjectionGridTransfer,
                            PRefinementGridTransfer)

__all__ = ['Operator', 'IdentityOperator', 'TransferKind', 'PatchMap', 'build_ho2lor',
           'elem_mixed_mass', 'L2Projection', 'L2Prolongation', 'L2ProjectionL2Space',
           'L2ProjectionH1Space', 'RefinementOperator', 'DerefinementOperator',
           'refinement_matrix', 'local_refinement_matrices', 'PRefinementTransferOperator',
           'TensorProductPRefinementTransferOperator', 'TransferOperator',
           'TrueTransferOperator', 'GridTransfer', 'InterpolationGridTransfer',
           'L2ProjectionGridTransfer', 'PRefinementGridTransfer']
