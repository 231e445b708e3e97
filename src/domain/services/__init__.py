from .config_loader import ConfigLoader
from .identity_reconciler import IdentityReconciler
from .role_resolver import AttributeRoleResolver

__all__ = ["ConfigLoader", "IdentityReconciler", "AttributeRoleResolver"]
