# src/estrapk/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """
    Numerical knobs for the simulator.

    Every value can be overridden from the environment with the ESTRAPK_ prefix
    (e.g. ESTRAPK_BASE_SAMPLES=2000). Settings are passed explicitly to the
    engine, which never reads them behind the caller's back.
    """
    model_config = SettingsConfigDict(env_prefix="ESTRAPK_", frozen=True)

    # Distribution volume
    vd_per_kg: float = 2.0            # L/kg
    min_weight_kg: float = 1.0        # substituted for a non-finite or non-positive body weight

    # Grid span
    lookback_h: float = 24.0
    min_horizon_h: float = 24.0 * 14
    horizon_half_lives: float = 5.0

    # Grid density
    base_samples: int = 1000
    samples_per_half_life: int = 100
    peak_window_half_lives: float = 4.0
    max_window_samples: int = 8000

    # Kinetics
    flip_flop_epsilon: float = 1e-9
    max_patch_wear_h: float = 24.0 * 7

    # Calibration
    calibration_min_prediction_pg_ml: float = 1e-3


DEFAULT_SETTINGS = EngineSettings()
