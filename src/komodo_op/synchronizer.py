"""
Synchronizer — one reconciliation pass from 1Password into Komodo.

    fetch items -> expand fields -> create/update -> delete orphans -> report

Every run derives "what should exist" from the vault as it is now and
"what is stale" from Komodo as it is now. Nothing is cached between
runs; the ownership marker in each variable's description is the only
memory of what this tool created.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import ClientError
from .komodo import KomodoClient
from .models import SyncReport
from .naming import format_variable_name, redact_name
from .onepassword import OnePasswordClient

MANAGED_BY_MARKER = "1Password-Sync:"


def managed_description(vault_id: str) -> str:
    """Description stamped on every variable this tool creates."""
    return f"{MANAGED_BY_MARKER} Synced from 1P vault '{vault_id}'"


def is_managed(description: str) -> bool:
    """Whether a Komodo variable carries our ownership marker."""
    return MANAGED_BY_MARKER in (description or "")


class Synchronizer:
    """Mirror 1Password item fields into Komodo secret variables.

    Args:
        source: 1Password Connect client (read-only).
        destination: Komodo client.
        vault_id: Vault identifier, written into created descriptions.
        logger: Logger for progress and failures.
    """

    def __init__(
        self,
        source: OnePasswordClient,
        destination: KomodoClient,
        vault_id: str,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.destination = destination
        self.vault_id = vault_id
        self.log = logger or logging.getLogger(__name__)

    def _collect(self, report: SyncReport) -> Optional[dict[str, str]]:
        """Fetch every item and flatten its fields into name -> value.

        Returns:
            Secrets to sync, or None if the item listing itself failed.
            Aliased names keep the value seen last.
        """
        self.log.info("Fetching items from 1Password vault '%s'...", self.vault_id)
        try:
            items = self.source.list_items()
        except ClientError as exc:
            self.log.error("Failed to get items from 1Password: %s", exc)
            report.source_failed = True
            return None

        report.items_seen = len(items)
        if not items:
            self.log.info("No items found in vault '%s'.", self.vault_id)

        secrets: dict[str, str] = {}
        self.log.info("Processing %d items from 1Password...", len(items))
        for summary in items:
            self.log.debug("Processing 1P item '%s' (ID: %s)", summary.title, summary.id)
            try:
                item = self.source.get_item_details(summary.id)
            except ClientError as exc:
                self.log.error(
                    "Failed to get details for item '%s' (%s): %s",
                    summary.title, summary.id, exc,
                )
                report.item_errors += 1
                continue

            if not item.fields:
                self.log.info("  Item '%s' has no fields. Skipping.", item.title)
                report.skipped += 1
                continue

            for field in item.fields:
                if not field.syncable:
                    self.log.debug(
                        "  Skipping field ID %s in item '%s' (label or value is empty)",
                        field.id, item.title,
                    )
                    report.skipped += 1
                    continue

                name = format_variable_name(item.title, field.label)
                if name in secrets:
                    self.log.debug(
                        "  Name '%s' produced more than once; last value wins",
                        redact_name(name),
                    )
                secrets[name] = field.value

        report.secrets_found = len(secrets)
        self.log.info(
            "Finished processing 1Password items. Found %d secrets to sync. "
            "Skipped %d items/fields.",
            len(secrets), report.skipped,
        )
        return secrets

    def sync_secret(self, name: str, value: str) -> bool:
        """Create or update one Komodo variable.

        Returns:
            True if the variable was created, False if it was updated.

        Raises:
            ClientError: Any failure talking to Komodo.
        """
        _, found = self.destination.get_variable(name)
        if found:
            self.log.debug("  Variable '%s' exists, updating.", redact_name(name))
            self.destination.update_variable_value(name, value)
            return False

        self.log.debug("  Variable '%s' does not exist, creating.", redact_name(name))
        self.destination.create_variable(
            name, value, managed_description(self.vault_id),
        )
        return True

    def _apply(self, secrets: dict[str, str], report: SyncReport) -> None:
        self.log.info("Starting synchronization (create/update) with Komodo...")
        for name, value in secrets.items():
            self.log.info("  Syncing Komodo secret '%s'...", redact_name(name))
            try:
                created = self.sync_secret(name, value)
            except ClientError as exc:
                self.log.error(
                    "    Failed to sync Komodo secret '%s': %s", redact_name(name), exc,
                )
                report.sync_errors += 1
                continue
            if created:
                report.created += 1
            else:
                report.updated += 1

        self.log.info(
            "Finished create/update phase. Processed: %d, Errors: %d",
            report.processed, report.sync_errors,
        )

    def _prune(self, expected: set[str], report: SyncReport) -> None:
        self.log.info("Checking for orphaned Komodo variables managed by this tool...")
        try:
            existing = self.destination.list_variables()
        except ClientError as exc:
            self.log.error(
                "Failed to list variables from Komodo, skipping deletion phase: %s", exc,
            )
            report.listing_failed = True
            return

        for name, variable in existing.items():
            if not is_managed(variable.description) or name in expected:
                continue

            self.log.info("  Found orphaned Komodo variable '%s', deleting.", redact_name(name))
            try:
                self.destination.delete_variable(name)
            except ClientError as exc:
                self.log.error(
                    "    Failed to delete Komodo variable '%s': %s", redact_name(name), exc,
                )
                report.delete_errors += 1
                continue
            report.deleted += 1

        self.log.info(
            "Finished deletion phase. Deleted: %d, Errors: %d",
            report.deleted, report.delete_errors,
        )

    def run(self) -> SyncReport:
        """Run one full reconciliation pass.

        Only a failed item listing stops the run early; every other
        failure is logged, counted and skipped.

        Returns:
            Counters for the run. ``report.total_errors == 0`` is success.
        """
        report = SyncReport()

        secrets = self._collect(report)
        if secrets is None:
            return report

        self._apply(secrets, report)
        self._prune(set(secrets), report)

        self.log.info("Synchronization finished.")
        self.log.info(
            "  Processed: %d (created %d, updated %d) | Deleted: %d | "
            "Skipped: %d | Errors: %d",
            report.processed, report.created, report.updated,
            report.deleted, report.skipped, report.total_errors,
        )
        return report
