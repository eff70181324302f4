from __future__ import annotations

import os
from typing import Any, List, Tuple

import torch

from .config import MODEL_NORMALIZATION, NORM_MEAN, NORM_STD, PROBABILITY_OUTPUT_MODELS


def get_device() -> torch.device:
    """
    Prefer CUDA, then Apple MPS, then CPU.
    """
    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def _repo_id(model_spec: str) -> str:
    return model_spec[len("hf:") :] if model_spec.startswith("hf:") else model_spec


def output_is_logits(model_spec: str) -> bool:
    """Whether the model's final output needs a sigmoid to become a probability."""
    return _repo_id(model_spec) not in PROBABILITY_OUTPUT_MODELS


def normalization_for(model_spec: str) -> Tuple[List[float], List[float]]:
    """(mean, std) the model was trained with; RMBG values unless the model has its own."""
    return MODEL_NORMALIZATION.get(_repo_id(model_spec), (NORM_MEAN, NORM_STD))


def load_torchscript_model(model_path: str, device: torch.device | None = None) -> torch.nn.Module:
    """
    Load a TorchScript segmentation model saved via torch.jit.save.

    State-dict checkpoints need the original model code and are not supported here.
    """
    if device is None:
        device = get_device()

    if not os.path.exists(model_path):
        raise FileNotFoundError(f"Model not found: {model_path}")

    try:
        # Registers torchvision's TorchScript ops (e.g. deform_conv2d) before loading.
        import torchvision  # noqa: F401

        # Load on CPU first; some archives carry float64 attributes that MPS rejects.
        model = torch.jit.load(model_path, map_location="cpu")
    except Exception as e:  # noqa: BLE001 - surface a helpful error
        raise RuntimeError(
            "Failed to load model. Expected a TorchScript segmentation model saved with "
            "torch.jit.save(); export state_dict checkpoints to TorchScript first."
        ) from e

    model.eval()
    for p in model.parameters():
        p.requires_grad_(False)
    return model.to(dtype=torch.float32).to(device)


def load_hf_segmentation_model(hf_repo: str, device: torch.device | None = None) -> torch.nn.Module:
    """
    Load an image-segmentation model via Hugging Face transformers (trust_remote_code).

    Float32 only; meta-device init is disabled because some remote model code calls
    `.item()` during construction.
    """
    if device is None:
        device = get_device()

    try:
        from transformers import AutoModelForImageSegmentation
    except Exception as e:  # noqa: BLE001
        raise RuntimeError("transformers is not installed. Run: pip install transformers") from e

    model = AutoModelForImageSegmentation.from_pretrained(
        hf_repo,
        trust_remote_code=True,
        low_cpu_mem_usage=False,
        device_map=None,
    )
    model.eval()
    for p in model.parameters():
        p.requires_grad_(False)
    return model.to(dtype=torch.float32).to(device)


def load_model(model_spec: str, device: torch.device | None = None) -> torch.nn.Module:
    """
    Model spec: 'hf:<repo id>' for Hugging Face models, anything else is a TorchScript path.
    """
    if model_spec.startswith("hf:"):
        return load_hf_segmentation_model(model_spec[len("hf:") :], device=device)
    return load_torchscript_model(model_spec, device=device)


def forward_model(model: torch.nn.Module, x: torch.Tensor) -> Any:
    """
    Run forward pass without autograd.
    """
    with torch.no_grad():
        return model(x)
