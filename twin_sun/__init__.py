"""
Twin Sun: a two-location day/night dashboard

Compares time, weather and sun events for two fixed places around a 3D
globe with a day/night terminator and a cloud shell.

Architecture:
    solar_position.py - Sun sub-point from a UTC instant
    shading.py        - Globe and cloud vertex/fragment programs (numpy)
    globe.py          - Sphere meshes, markers, per-frame render state
    textures.py       - Day/night/relief/cloud images via Pillow
    providers/        - Open-Meteo forecast fetching
    cache_manager.py  - Single-flight 15 minute forecast cache
    weather_queries.py- Next sun event, current conditions, precipitation
    scheduler.py      - Minute/hour aligned refresh ticks, Dashboard
    clock.py          - Local times, countdown, panel text

Entry Points:
    main.py                       - CLI with banner and options
    python -m twin_sun.scheduler  - Run the dashboard loop
"""

__version__ = "1.0.0"
__author__ = "Twin Sun"
