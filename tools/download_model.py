#!/usr/bin/env python3
"""
Download the image classification model into the assets directory.

Usage:
    python tools/download_model.py
    python tools/download_model.py --model efficientnet_lite0
"""

import argparse
import os
import sys

import requests

MODELS = {
    "mobilenet_v1": (
        "https://storage.googleapis.com/download.tensorflow.org/models/tflite/task_library/"
        "image_classification/android/mobilenet_v1_1.0_224_quantized_1_metadata_1.tflite"
    ),
    "efficientnet_lite0": (
        "https://storage.googleapis.com/mediapipe-models/image_classifier/"
        "efficientnet_lite0/float32/latest/efficientnet_lite0.tflite"
    ),
}


def download(url: str, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    if os.path.exists(path) and os.path.getsize(path) > 1024:
        print(f"[download] {path} already present")
        return path
    print(f"[download] Fetching {url}")
    response = requests.get(url, timeout=60)
    response.raise_for_status()
    with open(path, "wb") as f:
        f.write(response.content)
    print(f"[download] Saved to {path}")
    return path


def main() -> int:
    parser = argparse.ArgumentParser(description="Download a classifier model")
    parser.add_argument("--model", choices=sorted(MODELS), default="mobilenet_v1")
    parser.add_argument("--assets-dir", default="assets")
    args = parser.parse_args()

    path = os.path.join(args.assets_dir, f"{args.model}.tflite")
    try:
        download(MODELS[args.model], path)
    except requests.RequestException as e:
        print(f"ERROR: download failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
