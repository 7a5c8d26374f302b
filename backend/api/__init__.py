# MIZAN Beneficiary Resolution API
"""
REST API around the MIZAN resolution engine.

Endpoints:
- POST /api/v1/sessions - Upload mapped beneficiary rows
- POST /api/v1/runs - Start a cluster or audit run
- POST /api/v1/runs/learn - Learn a rule from two confirmed duplicates
- GET /api/v1/runs/{run_id} - Poll run progress and result
- POST /api/v1/pairwise - Pairwise score breakdown for selected records
- GET/POST /api/v1/rules - List or append persisted rules
"""
