"""
wattstream — Solar Surplus → WATT Token Accrual with Live Balances
===================================================================
Simulates household solar production, converts exported surplus into WATT
reward tokens, credits a per-user balance ledger, and streams every balance
change to connected dashboards over a WebSocket (with HTTP polling as the
consistency backstop).

Package layout::

    wattstream/
    ├── config.py          # YAML + env → typed Python config
    ├── constants.py       # Wire names, seeding bounds, live channel path
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # EnergyReading, LedgerEntry, Balance
    ├── engine/
    │   ├── synthesizer.py # Time-of-day reading synthesizer
    │   └── reward.py      # Surplus → token reward calculation
    ├── services/
    │   ├── ledger_service.py  # Atomic credit + balance reads
    │   ├── accrual_service.py # Synthesize → reward → credit → push
    │   ├── generators.py      # Ambient generator + auto-seeder
    │   └── broadcaster.py     # Channel registry + live pushes
    ├── client/
    │   └── ticker.py      # Live balance ticker (push + poll reconciliation)
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → user id, engine, runtime objects
        ├── schemas.py     # Request / response / wire models
        └── routes/        # Wallet, energy, seeding, live channel
"""

__version__ = "0.1.0"
