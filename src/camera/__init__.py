"""
Camera package: provider, use cases and resolution selection.

Canonical imports:
- `from camera.provider import CameraProvider, DEFAULT_BACK_CAMERA`
- `from camera.use_cases import ImageAnalysis, Preview`
- `from camera.resolution import ResolutionSelector, AspectRatioStrategy`
"""
