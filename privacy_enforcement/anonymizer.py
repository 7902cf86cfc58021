"""
Privacy Enforcement - Anonymized Projection.

============================================================
PURPOSE
============================================================
Turns a full wallet profile into the projection non-owners of
public and paid-for monetizable wallets receive.

============================================================
CRITICAL CONSTRAINTS
============================================================
The projection MUST NOT contain:
- wallet id or address
- project id
- owner / user id

It keeps the wallet type and behavioral aggregates only.

============================================================
"""

from typing import Any, Dict, List, Sequence


class WalletDataAnonymizer:
    """Builds the anonymized projection of a wallet profile."""

    # Fields that identify the wallet or its owner
    IDENTIFYING_FIELDS = frozenset({
        "id",
        "wallet_id",
        "address",
        "project_id",
        "user_id",
        "owner_id",
    })

    METRIC_FIELDS = (
        "active_days",
        "transaction_count",
        "total_volume",
        "productivity_score",
        "retention_score",
        "adoption_score",
    )

    BEHAVIOR_FIELDS = (
        "behavior_pattern",
        "loyalty_score",
        "total_flows",
        "privacy_efficiency_score",
    )

    NOTE = "Data is anonymized for privacy protection"

    def anonymize(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """
        Project a full profile onto its anonymized form.

        Missing metrics default to 0 and missing behavior
        aggregates to None.
        """
        retained = {k: v for k, v in profile.items() if k not in self.IDENTIFYING_FIELDS}

        return {
            "wallet_type": retained.get("wallet_type") or retained.get("type"),
            "metrics": {name: retained.get(name) or 0 for name in self.METRIC_FIELDS},
            "behavior": {name: retained.get(name) for name in self.BEHAVIOR_FIELDS},
            "anonymized": True,
            "note": self.NOTE,
        }

    def anonymize_batch(self, profiles: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.anonymize(profile) for profile in profiles]
