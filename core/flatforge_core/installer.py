"""Install decision engine and uninstaller.

For each application the engine compares the installed commit with the
commit of the built bundle and picks one action:

=============================  ==========================  ===========================
State                          only_install_if_newer=True  only_install_if_newer=False
=============================  ==========================  ===========================
not installed                  install fresh               install fresh
installed, same commit         skip                        ask: reinstall or skip
installed, different commit    update automatically        ask: update or skip
=============================  ==========================  ===========================

Every installing action goes through the same backend call. Operator
confirmation is an injected callable, so the engine never touches the
console.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from .errors import BackendError, BackendInstallError
from .models import (
    InstallAction,
    InstallPolicy,
    InstallResult,
    InstallState,
    InstallStatus,
    InstallSummary,
    UninstallResult,
    UninstallStatus,
)
from .version import VersionOracle, same_version

if TYPE_CHECKING:
    from .interfaces import PackagingBackend
    from .models import Application, VersionToken

logger = structlog.get_logger(__name__)

ConfirmFn = Callable[[str], bool]

_STATUS_FOR_ACTION = {
    InstallAction.SKIP: InstallStatus.SKIPPED,
    InstallAction.INSTALL_FRESH: InstallStatus.INSTALLED,
    InstallAction.REINSTALL_SAME: InstallStatus.REINSTALLED,
    InstallAction.UPDATE_AUTOMATICALLY: InstallStatus.UPDATED,
    InstallAction.UPDATE_WITH_CONFIRMATION: InstallStatus.UPDATED,
}


def deny_all(prompt: str) -> bool:  # noqa: ARG001
    """Confirmation callback that declines every prompt."""
    return False


def accept_all(prompt: str) -> bool:  # noqa: ARG001
    """Confirmation callback that accepts every prompt."""
    return True


@dataclass(frozen=True)
class Decision:
    """Chosen action and whether the operator was asked for it."""

    action: InstallAction
    prompted: bool = False


def classify(
    is_installed: bool,
    installed_token: VersionToken,
    bundle_token: VersionToken,
) -> InstallState:
    """Derive the install state from registry and commit information."""
    if not is_installed:
        return InstallState.NOT_INSTALLED
    if same_version(installed_token, bundle_token):
        return InstallState.INSTALLED_SAME_VERSION
    return InstallState.INSTALLED_DIFFERENT_VERSION


def decide(
    state: InstallState,
    policy: InstallPolicy,
    confirm: ConfirmFn,
    name: str,
) -> Decision:
    """Pick the install action for a state under a policy.

    Args:
        state: Install state of the application.
        policy: Policy snapshot for this decision.
        confirm: Operator confirmation callback; only called when the policy
            asks for it.
        name: Application name used in prompts.

    Returns:
        The decision.
    """
    if state is InstallState.NOT_INSTALLED:
        return Decision(InstallAction.INSTALL_FRESH)

    if state is InstallState.INSTALLED_SAME_VERSION:
        if policy.only_install_if_newer:
            return Decision(InstallAction.SKIP)
        if confirm(f"{name} is already at the same version (commit match). Reinstall anyway?"):
            return Decision(InstallAction.REINSTALL_SAME, prompted=True)
        return Decision(InstallAction.SKIP, prompted=True)

    if policy.only_install_if_newer:
        return Decision(InstallAction.UPDATE_AUTOMATICALLY)
    if confirm(f"{name} is installed but differs from the bundle. Update from bundle?"):
        return Decision(InstallAction.UPDATE_WITH_CONFIRMATION, prompted=True)
    return Decision(InstallAction.SKIP, prompted=True)


class InstallDecisionEngine:
    """Decides and performs installs of built bundles."""

    def __init__(
        self,
        backend: PackagingBackend,
        confirm: ConfirmFn = deny_all,
        oracle: VersionOracle | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            backend: Backend providing the install registry.
            confirm: Operator confirmation callback.
            oracle: Version oracle; built from backend when omitted.
        """
        self._backend = backend
        self._confirm = confirm
        self._oracle = oracle or VersionOracle(backend)
        self._log = logger.bind(component="install_engine")

    async def install(self, app: Application, policy: InstallPolicy) -> InstallResult:
        """Install one application's bundle according to the policy.

        Backend install failures are reported as FAILED outcomes, never
        raised.

        Args:
            app: Application to install.
            policy: Policy snapshot.

        Returns:
            InstallResult describing what happened.
        """
        log = self._log.bind(app=app.name)

        if not app.bundle_path.is_file():
            log.warning("bundle_missing", bundle=str(app.bundle_path))
            return InstallResult(
                app_id=app.app_id,
                name=app.name,
                status=InstallStatus.FAILED,
                reason=f"The {app.name} bundle does not exist. Build first.",
            )

        try:
            is_installed = app.app_id in await self._backend.list_installed()
        except BackendError as e:
            log.error("installed_query_failed", error=str(e))
            return InstallResult(
                app_id=app.app_id,
                name=app.name,
                status=InstallStatus.FAILED,
                reason=e.describe(),
            )

        installed_token: VersionToken = None
        bundle_token: VersionToken = None
        if is_installed:
            installed_token = await self._oracle.installed_version(app.app_id)
            bundle_token = await self._oracle.bundle_version(app.bundle_path)

        state = classify(is_installed, installed_token, bundle_token)
        decision = decide(state, policy, self._confirm, app.name)
        log.info(
            "install_decided",
            state=state.value,
            action=decision.action.value,
            prompted=decision.prompted,
            installed_commit=installed_token,
            bundle_commit=bundle_token,
        )

        result = InstallResult(
            app_id=app.app_id,
            name=app.name,
            status=_STATUS_FOR_ACTION[decision.action],
            action=decision.action,
            state=state,
            prompted=decision.prompted,
            installed_version=installed_token,
            bundle_version=bundle_token,
        )

        if not decision.action.installs:
            return result

        reinstall = decision.action is not InstallAction.INSTALL_FRESH
        try:
            await self._backend.install(app.bundle_path, reinstall=reinstall)
        except BackendInstallError as e:
            log.error("install_failed", action=decision.action.value, error=str(e))
            return result.model_copy(
                update={"status": InstallStatus.FAILED, "reason": e.describe()}
            )

        log.info("install_completed", status=result.status.value)
        return result

    async def install_many(
        self,
        apps: list[Application],
        policy: InstallPolicy,
    ) -> InstallSummary:
        """Install several applications in order, isolating failures.

        Args:
            apps: Applications in declared order.
            policy: Policy snapshot shared by every decision in the batch.

        Returns:
            InstallSummary with one result per application.
        """
        summary = InstallSummary()
        for app in apps:
            summary.results.append(await self.install(app, policy))
        return summary


class Uninstaller:
    """Confirmation-gated uninstall of installed applications."""

    def __init__(self, backend: PackagingBackend, confirm: ConfirmFn = deny_all) -> None:
        """Initialize the uninstaller.

        Args:
            backend: Backend providing the install registry.
            confirm: Operator confirmation callback.
        """
        self._backend = backend
        self._confirm = confirm
        self._log = logger.bind(component="uninstaller")

    async def uninstall(
        self, app: Application, *, delete_data: bool | None = None
    ) -> UninstallResult:
        """Uninstall one application after asking the operator.

        The first prompt confirms the uninstall, the second whether to delete
        the application's user data as well.

        Args:
            app: Application to uninstall.
            delete_data: Answer for the data prompt; None asks the operator.

        Returns:
            UninstallResult describing what happened.
        """
        log = self._log.bind(app=app.name)

        def result(status: UninstallStatus, reason: str | None = None) -> UninstallResult:
            return UninstallResult(app_id=app.app_id, name=app.name, status=status, reason=reason)

        try:
            installed = app.app_id in await self._backend.list_installed()
        except BackendError as e:
            log.error("installed_query_failed", error=str(e))
            return result(UninstallStatus.FAILED, e.describe())

        if not installed:
            log.warning("not_installed")
            return result(UninstallStatus.NOT_INSTALLED)

        if not self._confirm(f"Uninstall {app.name}?"):
            log.info("uninstall_cancelled")
            return result(UninstallStatus.CANCELLED)

        if delete_data is None:
            delete_data = self._confirm(f"Also delete user data for {app.name}?")
        try:
            await self._backend.uninstall(app.app_id, delete_data=delete_data)
        except BackendInstallError as e:
            log.error("uninstall_failed", error=str(e))
            return result(UninstallStatus.FAILED, e.describe())

        log.info("uninstall_completed", delete_data=delete_data)
        if delete_data:
            return result(UninstallStatus.UNINSTALLED_WITH_DATA)
        return result(UninstallStatus.UNINSTALLED)

    async def uninstall_many(
        self, apps: list[Application], *, delete_data: bool | None = None
    ) -> list[UninstallResult]:
        """Uninstall several applications in order, isolating failures."""
        return [await self.uninstall(app, delete_data=delete_data) for app in apps]
