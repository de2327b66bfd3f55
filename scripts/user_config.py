"""PictoNet User Configuration.

This is the user-facing configuration file. Modify settings here to override
the studio configuration persisted with the working set.

Usage:
    python scripts/run_studio.py --config scripts/user_config.py list
    python scripts/run_studio.py --config scripts/user_config.py run --all
"""

CONFIG = {
    # ========================================================================
    # LANGUAGE & LOCATION
    # ========================================================================
    "LANG": "es",                 # Language of analysis, elements and prompts
    "REGION": "Madrid, ES",
    "LAT": 40.4168,
    "LNG": -3.7038,

    # ========================================================================
    # IMAGE GENERATION
    # ========================================================================
    "ASPECT_RATIO": "1:1",        # 1:1, 3:4, 4:3, 9:16 or 16:9
    "IMAGE_MODEL": "flash",       # "flash" or "pro"

    # ========================================================================
    # PROVENANCE
    # ========================================================================
    "AUTHOR": "PICTOS.NET",
    "LICENSE": "CC BY 4.0",

    # ========================================================================
    # WORKSPACE
    # ========================================================================
    "BASE_DIR": "./pictonet_output",  # Exports, SVG files and logs go here
    "LOG_LEVEL": "INFO",
    "CONCURRENCY": 2,             # Cascades running at once with `run --all`

    # ========================================================================
    # STRUCTURED SVG STYLES
    # ========================================================================
    # "SVG_STYLES": {
    #     "f": {"fill": "#000000"},
    #     "k": {"fill": "#ffffff"},
    # },
}
