"""
Domain models — Pydantic types for the provisioning layer.

    from provisioner.core.models import PackageRecipe, RecipeEntry, ProcedureResult
"""

from provisioner.core.models.config import ProvisionConfig, SearchPaths
from provisioner.core.models.credential import CredentialEntry, CredentialSpec
from provisioner.core.models.event import (
    COMMAND_NOT_FOUND,
    Decision,
    DispatchResult,
    FailureKind,
    InstallationEvent,
    Outcome,
)
from provisioner.core.models.recipe import (
    KeyRegistration,
    PackageRecipe,
    RecipeEntry,
    ReleaseSpec,
    RepoRegistration,
)
from provisioner.core.models.result import BatchReport, ProcedureResult

__all__ = [
    # config.py
    "ProvisionConfig",
    "SearchPaths",
    # credential.py
    "CredentialEntry",
    "CredentialSpec",
    # event.py
    "COMMAND_NOT_FOUND",
    "Decision",
    "DispatchResult",
    "FailureKind",
    "InstallationEvent",
    "Outcome",
    # recipe.py
    "KeyRegistration",
    "PackageRecipe",
    "RecipeEntry",
    "ReleaseSpec",
    "RepoRegistration",
    # result.py
    "BatchReport",
    "ProcedureResult",
]
