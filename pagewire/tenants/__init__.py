from .linker import TenantAccountLinker
from .resolver import TenantContext, TenantResolver

__all__ = ["TenantAccountLinker", "TenantContext", "TenantResolver"]
