"""Local instruction-based image editing with a diffusers pipeline.

This backend runs the archetype prompt against the source photo on the local
machine, e.g. with ``timbrooks/instruct-pix2pix``.  ``torch`` and
``diffusers`` are imported lazily inside the methods that need them, so the
package imports fine on machines that only use the Gemini backend.

Inference is blocking, so :meth:`DiffusersEditClient.generate` runs it in a
worker thread.  A lock serialises access to the single loaded pipeline; with
several workers the GPU processes one archetype at a time while the others
wait.

Error classification
--------------------
- CUDA out-of-memory during inference is **transient**: the CUDA cache is
  emptied and the retry policy gets another chance.
- Model loading failures and any other inference error are **permanent**.
"""

from __future__ import annotations

import asyncio
import gc
import io
import logging
import threading

from PIL import Image, ImageOps, UnidentifiedImageError

from lookbook.core.config import LookbookConfig
from lookbook.core.errors import GenerationError
from lookbook.core.generation_client import GenerationClient, client_registry
from lookbook.core.models import EncodedImage, SourceImage

logger = logging.getLogger(__name__)


def _get_dtype_map() -> dict:
    """Return the dtype string -> ``torch.dtype`` mapping (imports torch lazily)."""
    import torch

    return {
        "bfloat16": torch.bfloat16,
        "float16": torch.float16,
        "float32": torch.float32,
    }


def preprocess_image(source: SourceImage, max_size: int = 1024) -> Image.Image:
    """Decode the source photo for inference.

    Applies EXIF orientation, shrinks images larger than *max_size* while
    keeping the aspect ratio, and converts to RGB.

    Raises:
        GenerationError: (permanent) if the bytes are not a readable image.
    """
    try:
        image = Image.open(io.BytesIO(source.payload))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise GenerationError(f"Source image could not be decoded: {e}") from e

    image = ImageOps.exif_transpose(image)

    if max(image.size) > max_size:
        original_size = image.size
        image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        logger.info("Resized image from %s to %s", original_size, image.size)

    if image.mode != "RGB":
        image = image.convert("RGB")

    return image


@client_registry.register
class DiffusersEditClient(GenerationClient):
    """Generation client running a local diffusers image-edit pipeline.

    The pipeline is loaded on first use and kept until :meth:`close`.
    """

    name = "diffusers"
    description = "Local instruction-based image editing with diffusers"

    def __init__(self, config: LookbookConfig) -> None:
        super().__init__(config)
        self.model_id = config.diffusers_model_id
        self._pipeline = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    def load_model(self) -> None:
        """Load the pipeline if it is not loaded yet.

        Raises:
            GenerationError: (permanent) if the model cannot be loaded.
        """
        if self._pipeline is not None:
            return

        import torch
        from diffusers import DiffusionPipeline

        torch_dtype = _get_dtype_map().get(self.config.torch_dtype, torch.float16)
        logger.info(
            "Loading model '%s' (dtype=%s, device=%s, cache=%s).",
            self.model_id,
            self.config.torch_dtype,
            self.config.device,
            self.config.models_dir,
        )

        try:
            # DiffusionPipeline picks the pipeline class from model_index.json.
            pipeline = DiffusionPipeline.from_pretrained(
                self.model_id,
                torch_dtype=torch_dtype,
                cache_dir=str(self.config.models_dir),
            )

            if self.config.enable_model_cpu_offload:
                pipeline.enable_model_cpu_offload()
                logger.info("Model CPU offloading enabled.")
            else:
                pipeline = pipeline.to(self.config.device)

            if self.config.enable_attention_slicing:
                pipeline.enable_attention_slicing()
                logger.info("Attention slicing enabled.")
        except Exception as e:
            logger.exception("Failed to load model '%s'.", self.model_id)
            raise GenerationError(f"Failed to load model '{self.model_id}': {e}") from e

        self._pipeline = pipeline
        logger.info("Model '%s' loaded successfully.", self.model_id)

    def _generate_sync(self, source: SourceImage, prompt: str) -> EncodedImage:
        import torch

        image = preprocess_image(source)

        with self._lock:
            self.load_model()
            try:
                output = self._pipeline(
                    prompt=prompt,
                    image=image,
                    num_inference_steps=self.config.num_inference_steps,
                )
            except torch.cuda.OutOfMemoryError as e:
                self._clear_gpu_memory()
                raise GenerationError(f"CUDA out of memory: {e}", classification="transient") from e
            except Exception as e:
                logger.exception("Inference failed for model '%s'.", self.model_id)
                raise GenerationError(f"Inference failed: {e}") from e

        images = getattr(output, "images", None)
        if not images:
            raise GenerationError("The pipeline returned no image.")

        buffer = io.BytesIO()
        images[0].save(buffer, format="PNG")
        return EncodedImage(media_type="image/png", payload=buffer.getvalue())

    async def generate(self, source: SourceImage, prompt: str) -> EncodedImage:
        return await asyncio.to_thread(self._generate_sync, source, prompt)

    def _clear_gpu_memory(self) -> None:
        import torch

        if torch.cuda.is_available():
            torch.cuda.empty_cache()
            torch.cuda.synchronize()

    async def close(self) -> None:
        """Unload the pipeline and free GPU memory."""
        with self._lock:
            if self._pipeline is None:
                return
            logger.info("Unloading model '%s'.", self.model_id)
            self._pipeline = None
            gc.collect()
            self._clear_gpu_memory()
