"""Command-line entry point for image deconvolution.

Deconvolves a grayscale image by a measured PSF, either with quadratic
regularization solved by conjugate gradients, or with the same objective
under bound constraints solved by VMLMB.

Usage::

    inverse-deconv psf.png blurred.png -o restored.png -r vmlmb -a 0.01
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from .deconvolution.bounded import deconvolve_bounded
from .deconvolution.linear_deconvolver import LinearDeconvolver
from .deconvolution.utils import pad_psf
from .linalg.conjugate_gradient import CGStatus
from .optim.vmlmb import OptimTask

LOGGER = logging.getLogger(__name__)


def _load_grayscale(path: str | Path) -> NDArray[np.float64]:
    """Load an image as a float64 grayscale array."""
    pil_img = Image.open(path).convert("L")
    return np.asarray(pil_img, dtype=np.float64)


def _normalize_psf(psf: NDArray[np.float64]) -> NDArray[np.float64]:
    """Scale a PSF to unit sum."""
    total = psf.sum()
    if total <= 0:
        raise ValueError("The PSF must have a positive sum.")
    return psf / total


def _save_image(img: NDArray[np.float64], path: str | Path) -> None:
    """Rescale *img* to [0, 255] and save it as an 8-bit grayscale image."""
    lo, hi = float(img.min()), float(img.max())
    if hi - lo < 1e-12:
        scaled = np.zeros_like(img)
    else:
        scaled = (img - lo) / (hi - lo)
    img_8 = np.round(scaled * 255.0).astype(np.uint8)
    Image.fromarray(img_8).save(str(path))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inverse-deconv",
        description="Deconvolve a grayscale image by a point spread function.",
    )
    parser.add_argument("psf", help="Path to the PSF image.")
    parser.add_argument("image", help="Path to the blurred image.")
    parser.add_argument(
        "-o",
        "--output",
        default="deconvolved.png",
        help="Path of the result. Default: deconvolved.png.",
    )
    parser.add_argument(
        "-r",
        "--method",
        choices=["cg", "vmlmb"],
        default="cg",
        help="cg: quadratic regularization; vmlmb: same with bounds. Default: cg.",
    )
    parser.add_argument(
        "-a",
        "--mu",
        type=float,
        default=0.01,
        help="Regularization level. Default: 0.01.",
    )
    parser.add_argument(
        "--max-iter",
        type=int,
        default=200,
        help="Maximum number of iterations. Default: 200.",
    )
    parser.add_argument(
        "--lower",
        type=float,
        default=0.0,
        help="Lower bound for the vmlmb method. Default: 0.",
    )
    parser.add_argument(
        "--upper",
        type=float,
        default=None,
        help="Upper bound for the vmlmb method. Default: none.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log solver details.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the deconvolution from the command line."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    image = _load_grayscale(args.image) / 255.0
    psf = _normalize_psf(_load_grayscale(args.psf))
    LOGGER.info(
        "Deconvolving %s (%d x %d) with %s.",
        args.image,
        image.shape[1],
        image.shape[0],
        args.method,
    )

    deconvolver = LinearDeconvolver(image.shape, image, pad_psf(psf, image.shape), mu=args.mu)
    if args.method == "cg":
        x = np.zeros_like(image)
        status = deconvolver.solve(x, args.max_iter, reset=True)
        ok = status in (CGStatus.CONVERGED, CGStatus.TOO_MANY_ITERATIONS)
        LOGGER.info(
            "Conjugate gradient: %s after %d iteration(s).",
            status.name,
            deconvolver.cg.iterations,
        )
    else:
        result = deconvolve_bounded(
            deconvolver,
            lower=args.lower,
            upper=args.upper,
            max_iter=args.max_iter,
        )
        x = result.x
        ok = result.task != OptimTask.ERROR

    if not ok:
        LOGGER.error("Deconvolution failed.")
        return 1
    _save_image(x, args.output)
    LOGGER.info("Result saved to %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
