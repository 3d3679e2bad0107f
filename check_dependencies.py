#!/usr/bin/env python3
"""Check if the panography runtime and test dependencies are installed."""

import sys
from importlib import import_module

REQUIRED_PACKAGES = [
    ('cv2', 'opencv-contrib-python'),
    ('numpy', 'numpy'),
    ('yaml', 'PyYAML'),
    ('loguru', 'loguru'),
    ('jsonschema', 'jsonschema'),
]

TEST_PACKAGES = [
    ('pytest', 'pytest'),
    ('psutil', 'psutil'),
]


def _check(packages, missing, installed):
    for module_name, package_name in packages:
        try:
            mod = import_module(module_name)
            version = getattr(mod, '__version__', 'unknown')
            installed.append((package_name, version))
            print(f"[OK] {package_name:25} {version}")
        except ImportError:
            missing.append(package_name)
            print(f"[MISSING] {package_name:25} NOT FOUND")


def check_sift():
    """SIFT lives in the main cv2 namespace from OpenCV 4.4 on."""
    try:
        import cv2
    except ImportError:
        return False
    if not hasattr(cv2, 'SIFT_create'):
        print(f"[MISSING] cv2.SIFT_create (OpenCV {cv2.__version__} is too old)")
        return False
    print(f"[OK] {'cv2.SIFT_create':25} available")
    return True


def check_dependencies(include_tests=False):
    """Check if all required packages are installed."""
    missing = []
    installed = []

    print("Checking dependencies...\n")
    _check(REQUIRED_PACKAGES, missing, installed)
    if include_tests:
        _check(TEST_PACKAGES, missing, installed)
    sift_ok = check_sift()

    print("\n" + "="*60)

    if missing:
        print(f"\n[ERROR] Missing {len(missing)} package(s):")
        for pkg in missing:
            print(f"   - {pkg}")
        print("\nInstall with:")
        print(f"   pip install {' '.join(missing)}")
        return False
    if not sift_ok:
        print("\n[ERROR] Upgrade opencv-contrib-python to 4.4 or newer")
        return False

    print(f"\n[SUCCESS] All {len(installed)} required packages are installed!")
    return True


if __name__ == "__main__":
    success = check_dependencies(include_tests="--tests" in sys.argv)
    sys.exit(0 if success else 1)
