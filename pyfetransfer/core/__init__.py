from .mesh import Mesh
from .refinement import CoarseFineTransformations, Embedding
from .fespace import FESpace, ElementRestriction
__all__=['Mesh','CoarseFineTransformations','Embedding','FESpace','ElementRestriction']
