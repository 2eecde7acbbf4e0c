"""
Identify a photo from the command line — the producer side of POST /identify.

Reads an image file (or grabs a frame from the device camera), shrinks it to
1024 px on the longer side as JPEG, posts it and prints the result card.

Usage:
    python -m natureid.scripts.identify_photo path/to/photo.jpg
    python -m natureid.scripts.identify_photo --camera
    python -m natureid.scripts.identify_photo --base http://localhost:8000 photo.png
"""
import argparse
import sys

import httpx

from natureid.adapters.image.normalizer import file_to_data_uri, shrink_image
from natureid.orchestrator.contracts import Identification
from natureid.services.status_store import StatusStore

TIMEOUT = 60.0


def acquire(args, status: StatusStore) -> str | None:
    if args.camera:
        from natureid.adapters.camera.cv2_camera import CV2Camera
        camera = CV2Camera(status, index=args.camera_index)
        try:
            return camera.capture_data_uri()
        finally:
            camera.release()
    return file_to_data_uri(args.photo)


def print_card(ident: Identification):
    print(f"\n  {ident.name}  ({ident.scientific_name})")
    print(f"  category:   {ident.category}")
    print(f"  confidence: {ident.confidence_percent}% ({ident.confidence_level.replace('_', ' ')})")
    if ident.degraded:
        print("  [degraded result — the reply could not be parsed]")
    print(f"\n  {ident.description}")
    for key, value in ident.additional_info.items():
        print(f"  - {key}: {value}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Identify a plant or animal photo")
    parser.add_argument("photo", nargs="?", help="image file to identify")
    parser.add_argument("--camera", action="store_true", help="grab a frame from the device camera instead")
    parser.add_argument("--camera-index", type=int, default=None)
    parser.add_argument("--base", default="http://localhost:8000", help="NatureID server base URL")
    args = parser.parse_args(argv)
    if not args.camera and not args.photo:
        parser.error("give a photo path or --camera")

    status = StatusStore()
    image = acquire(args, status)
    if not image:
        print("capture failed:", "; ".join(status.logs) or "no image")
        return 1

    small = shrink_image(image)
    print(f"image: {len(image)} chars → {len(small)} chars after shrink")

    try:
        r = httpx.post(f"{args.base.rstrip('/')}/identify", json={"image": small}, timeout=TIMEOUT)
    except httpx.ConnectError:
        print(f"connection refused — is the server running at {args.base}?")
        return 1

    data = r.json()
    if r.status_code != 200:
        print(f"error {r.status_code}: {data.get('message')}")
        return 1
    print_card(Identification.model_validate(data["identification"]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
