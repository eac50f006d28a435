"""
MaterCare Maternal Health Risk Engine
=====================================

Records maternal-health observations and raises clinical alerts when
measurements cross danger thresholds.  The package provides the validation
layer, a deterministic risk classifier, the alert lifecycle manager, a
profile risk synchronizer, and a typed façade over a key-value record
store, plus a thin FastAPI shell.

DISCLAIMER: Alerts produced by this software are prompts for review by a
licensed clinician.  They are not diagnoses.
"""

__version__ = "0.1.0"
