"""
Synthetic Scenario: Prenatal Monitoring Walkthrough
===================================================

This script runs the MaterCare risk engine end to end using entirely
synthetic data.  No real patient data is used.

Steps demonstrated:
  1. Load engine settings from YAML
  2. Register a provider and enroll a synthetic profile
  3. Record a normal metrics snapshot
  4. Record two dangerous snapshots and watch the alert escalate
  5. Resolve the alert and re-sync the profile
  6. Show the structured error for a repeated resolution
  7. Page through profiles

DISCLAIMER: This is a synthetic demonstration.  Alerts are prompts for
clinician review, not diagnoses.

Usage:
    python -m examples.synthetic_scenario
    # or: python examples/synthetic_scenario.py
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from matercare.commands import (
    CreateProfile,
    CreateProvider,
    GetProfile,
    ListAlerts,
    ListProfiles,
    RecordMetrics,
    ResolveAlert,
)
from matercare.config import load_settings_from_yaml
from matercare.logging_config import configure_logging
from matercare.service import CommandResult, MaternalHealthService


def _banner(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def _show(result: CommandResult) -> None:
    print(json.dumps(result.data if result.ok else result.error, indent=2))


def main() -> None:
    _banner("MaterCare Synthetic Scenario: Prenatal Monitoring")
    print("DISCLAIMER: All data in this demo is entirely synthetic.\n")

    # ------------------------------------------------------------------
    # Step 1: Settings
    # ------------------------------------------------------------------
    _banner("Step 1: Load Engine Settings")
    settings = load_settings_from_yaml(Path(__file__).parent / "settings.yaml")
    configure_logging(settings.log_level, json_output=False)
    service = MaternalHealthService(settings=settings)
    print(f"Systolic threshold: {settings.risk_thresholds.systolic_high}")
    print(f"Escalation ceiling: {settings.alerts.max_escalation_level}")

    # ------------------------------------------------------------------
    # Step 2: Provider and profile
    # ------------------------------------------------------------------
    _banner("Step 2: Register Provider and Enroll Profile")
    provider = service.execute(CreateProvider(
        name="Dr. Synthetic Obstetrician",
        specialization="Obstetrics",
        license_number="SYN-0001",
        facility_id="clinic-demo",
    ))
    provider_id = provider.data["id"]

    due_date = datetime.now(timezone.utc) + timedelta(days=200)
    profile = service.execute(CreateProfile(
        name="Synthetic Participant A",
        age=29,
        blood_type="A+",
        due_date=due_date,
        primary_care_provider_id=provider_id,
        allergies=["penicillin"],
    ))
    _show(profile)
    profile_id = profile.data["id"]

    # ------------------------------------------------------------------
    # Step 3: Normal snapshot
    # ------------------------------------------------------------------
    _banner("Step 3: Normal Snapshot")
    _show(service.execute(RecordMetrics(
        maternal_profile_id=profile_id,
        recorded_by_id=provider_id,
        weight=68.2,
        blood_pressure_systolic=118,
        blood_pressure_diastolic=76,
        blood_sugar=92,
        hemoglobin_levels=12.4,
        fetal_heart_rate=142,
    )))

    # ------------------------------------------------------------------
    # Step 4: Dangerous snapshots
    # ------------------------------------------------------------------
    _banner("Step 4: Dangerous Snapshots")
    for systolic in (150, 156):
        result = service.execute(RecordMetrics(
            maternal_profile_id=profile_id,
            recorded_by_id=provider_id,
            blood_pressure_systolic=systolic,
            blood_pressure_diastolic=95,
            blood_sugar=100,
            hemoglobin_levels=12,
        ))
        print(f"systolic={systolic} flagged={result.data['isFlaggedForReview']}")

    alerts = service.execute(ListAlerts(profile_id=profile_id))
    _show(alerts)
    _show(service.execute(GetProfile(profile_id=profile_id)))

    # ------------------------------------------------------------------
    # Step 5: Resolve
    # ------------------------------------------------------------------
    _banner("Step 5: Resolve Alert")
    alert_id = alerts.data[0]["id"]
    _show(service.execute(ResolveAlert(
        alert_id=alert_id,
        notes="Repeat reading 124/80 after rest; continue routine monitoring.",
    )))
    print(f"Profile risk level: {service.execute(GetProfile(profile_id=profile_id)).data['riskLevel']}")

    # ------------------------------------------------------------------
    # Step 6: Repeated resolution
    # ------------------------------------------------------------------
    _banner("Step 6: Repeated Resolution")
    _show(service.execute(ResolveAlert(alert_id=alert_id, notes="duplicate")))

    # ------------------------------------------------------------------
    # Step 7: Paging
    # ------------------------------------------------------------------
    _banner("Step 7: List Profiles")
    page = service.execute(ListProfiles(page=1, limit=5))
    print(f"Returned {len(page.data['data'])} of {page.data['total']} profiles")

    _banner("Scenario Complete")


if __name__ == "__main__":
    main()
