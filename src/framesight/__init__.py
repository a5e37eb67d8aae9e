"""framesight -- Vision-model analysis of videos found on arbitrary websites.

This package drives a browser to locate a video, captures a bounded set of
frames from it, analyses every frame with a vision-capable model and
synthesizes the per-frame analyses into one answer to a free-form request.
The analysis session pipeline (navigate -> plan -> capture -> analyze ->
synthesize) is the core; the browser and the model are pluggable.
"""

__version__ = "0.1.0"
