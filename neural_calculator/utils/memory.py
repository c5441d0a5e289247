"""
Memory utilities for model and tensor lifetimes.

This module provides utilities for:
- Monitoring GPU memory (CUDA/MPS) and system RAM
- Measuring the footprint of a loaded model
- Releasing models and transient tensors
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import psutil
import torch

logger = logging.getLogger(__name__)


def get_available_gpu_memory() -> float:
    """
    Get available GPU memory in GB.

    Returns:
        Available GPU memory in GB, or 0.0 if no GPU available
    """
    try:
        if torch.cuda.is_available():
            device_idx = torch.cuda.current_device()
            free_memory_bytes, total_memory_bytes = torch.cuda.mem_get_info(device_idx)
            free_gb = free_memory_bytes / (1024**3)

            logger.debug(
                f"CUDA GPU {device_idx}: {free_gb:.2f}GB free of "
                f"{total_memory_bytes / (1024**3):.2f}GB total"
            )
            return free_gb

        logger.debug("No CUDA GPU available")
        return 0.0

    except Exception as e:
        logger.warning(f"Error getting GPU memory: {e}")
        return 0.0


def get_available_system_memory() -> float:
    """
    Get available system RAM in GB.

    Returns:
        Available RAM in GB
    """
    try:
        vm = psutil.virtual_memory()
        available_gb = vm.available / (1024**3)
        logger.debug(f"System RAM: {available_gb:.2f}GB free of {vm.total / (1024**3):.2f}GB total")
        return available_gb

    except Exception as e:
        logger.warning(f"Error getting system memory: {e}")
        return 0.0


def get_available_memory() -> Tuple[float, str]:
    """
    Get available memory and the kind of memory it refers to.

    Returns:
        Tuple of (available_memory_gb, memory_type) where memory_type is 'gpu' or 'cpu'
    """
    gpu_memory = get_available_gpu_memory()
    if gpu_memory > 0:
        return gpu_memory, "gpu"
    return get_available_system_memory(), "cpu"


def get_model_actual_memory(model: torch.nn.Module) -> float:
    """
    Calculate actual memory usage of a loaded model in GB.

    Args:
        model: Loaded PyTorch model

    Returns:
        Actual memory usage in GB
    """
    try:
        param_size = sum(p.nelement() * p.element_size() for p in model.parameters())
        buffer_size = sum(b.nelement() * b.element_size() for b in model.buffers())
        return (param_size + buffer_size) / (1024**3)

    except Exception as e:
        logger.warning(f"Error calculating model memory: {e}")
        return 0.0


def clear_gpu_cache() -> None:
    """Clear GPU cache to free up memory, if a GPU backend is present."""
    try:
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
            logger.debug("Cleared CUDA cache")
        elif torch.backends.mps.is_available():
            torch.mps.empty_cache()
            logger.debug("Cleared MPS cache")
    except Exception as e:
        logger.warning(f"Error clearing GPU cache: {e}")


def release_model(model: Optional[torch.nn.Module], device: str = "cpu") -> None:
    """
    Release a model that is being discarded.

    Parameters are freed once the last reference goes away; on an
    accelerator the cached blocks are returned as well.

    Args:
        model: Model being discarded (None is ignored)
        device: Device the model lived on
    """
    if model is None:
        return
    del model
    if device != "cpu":
        clear_gpu_cache()


@contextmanager
def tensor_scope() -> Iterator[List[torch.Tensor]]:
    """
    Scope for transient tensors.

    Tensors appended to the yielded list are dropped when the block exits,
    whether it exits normally or by exception.
    """
    tensors: List[torch.Tensor] = []
    try:
        yield tensors
    finally:
        logger.debug(f"Releasing {len(tensors)} transient tensor(s)")
        tensors.clear()


def format_memory_size(size_gb: float) -> str:
    """
    Format memory size for human-readable display.

    Args:
        size_gb: Size in GB

    Returns:
        Formatted string (e.g., "1.50GB", "512.00MB", "24.00B")
    """
    if size_gb >= 1.0:
        return f"{size_gb:.2f}GB"
    if size_gb * 1024 >= 1.0:
        return f"{size_gb * 1024:.2f}MB"
    if size_gb * 1024**2 >= 1.0:
        return f"{size_gb * 1024**2:.2f}KB"
    return f"{size_gb * 1024**3:.2f}B"
