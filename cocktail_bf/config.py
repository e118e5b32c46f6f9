"""
Central configuration for the cocktail-party beamforming workbench.

Exports constants used across the pipeline, reports and scripts. Defaults
match the recorded cocktail-party sessions (cocktail_080108 cluster).
"""
import numpy as np

# --- Session selection ---
TARGET_INDEX: int = 3            # speaker-of-interest recording 1..3

# --- Processing parameters ---
DISTANCE_WEIGHT_EXPONENT: float = 1.0   # 0 = equal weights, >0 favours close mics, <0 distant mics
DESIRED_SNR_DB: float = -7.0            # target vs party noise, average power over all mics
WINDOW_DURATION_S: float = 40e-3        # hop/window for location lookup and beamforming
HIGHPASS_CUTOFF_HZ: float = 300.0       # removes room-mode components before beamforming
HIGHPASS_ORDER: int = 4

# --- Assessment ---
INTELLIGIBILITY_WINDOW_S: float = 100e-3

# --- Physical constants ---
SPEED_OF_SOUND_KEY: str = "c"           # token in the parameter file: "c = 343.2"
SPEED_OF_SOUND_MPS: float = 343.0       # only used for synthetic sessions

# --- Session file layout (formatted with the target index) ---
TARGET_WAV_PATTERN: str = "soi{n}.wav"
NOISE_WAV_PATTERN: str = "party{n}.wav"
SOURCE_TRACK_PATTERN: str = "soi{n}pos.txt"
MIC_POSITIONS_FILE: str = "mpos.txt"
PARAMETER_FILE: str = "info.txt"

# --- Numerical guards ---
POWER_EPS: float = float(np.finfo(float).eps)

# --- Console progress ---
PROGRESS_EVERY_WINDOWS: int = 250       # windows between [sched] progress lines

# --- Output naming ---
OUTPUT_WAVS = {
    "beam_mix": "beam_mix.wav",
    "beam_noise": "beam_noise.wav",
    "beam_target": "beam_target.wav",
    "close_mix": "close_mix.wav",
    "close_noise": "close_noise.wav",
    "close_target": "close_target.wav",
}
SUMMARY_JSON: str = "summary.json"
