from typing import Dict

# --- Environment Risk Profiles ---
# Defaults applied to a user's RiskLimits at account setup.
RISK_PROFILES: Dict[str, Dict[str, float]] = {
    "development": {
        "max_concurrent_trades": 10,
        "max_daily_trades": 100,
        "max_drawdown": 0.15,
        "max_daily_loss": 0.10,
        "risk_per_trade": 0.05,
        "max_position_size": 0.8,
        "leverage": 1.0,
    },
    "staging": {
        "max_concurrent_trades": 8,
        "max_daily_trades": 75,
        "max_drawdown": 0.12,
        "max_daily_loss": 0.07,
        "risk_per_trade": 0.03,
        "max_position_size": 0.6,
        "leverage": 1.0,
    },
    "production": {
        "max_concurrent_trades": 5,
        "max_daily_trades": 50,
        "max_drawdown": 0.10,
        "max_daily_loss": 0.05,
        "risk_per_trade": 0.02,
        "max_position_size": 0.5,
        "leverage": 1.0,
    },
}

# --- Risk Level Bands (drawdown, daily loss) ---
RISK_LEVEL_BANDS = [
    ("CRITICAL", 0.08, 0.04),
    ("HIGH", 0.05, 0.02),
    ("MEDIUM", 0.02, 0.01),
]

# --- Pipeline ---
CIRCUIT_OPEN_REASON = "circuit breaker open"
USER_ID_HEADER = "X-User-Id"
