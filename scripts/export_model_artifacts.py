#!/usr/bin/env python3
"""
Script to write the calculator's model artifacts and optionally upload them to Google Cloud Storage.

Writes `model_add/` and `model_subtract/` (model.json + weights.pt) under the
output directory. Serve that directory as MODEL_ORIGIN, or upload it and point
MODEL_ORIGIN at gs://<bucket>/<prefix>.

Environment Setup:
    - Authenticate with GCP: gcloud auth application-default login
    - Or set GOOGLE_APPLICATION_CREDENTIALS in .env file

Example .env file:
    GOOGLE_APPLICATION_CREDENTIALS=/path/to/service-account-key.json
    GCS_BUCKET=my-ml-models
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from google.cloud import storage

from neural_calculator.core.artifact_store import write_artifact
from neural_calculator.core.model_resolver import build_synthetic_model
from neural_calculator.core.operations import Operation

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def export_artifacts(output_dir):
    """
    Write one artifact directory per operation.

    Args:
        output_dir: Directory that will act as the model origin

    Returns:
        Path to the output directory
    """
    output_dir = Path(output_dir)
    for operation in Operation:
        model = build_synthetic_model(operation, device="cpu")
        write_artifact(model, output_dir / operation.artifact_dir)
    logger.info(f"Artifacts written to: {output_dir}")
    return output_dir


def upload_directory_to_gcs(local_path, bucket_name, gcs_prefix):
    """
    Upload a local directory to Google Cloud Storage.

    Args:
        local_path: Path to local directory
        bucket_name: GCS bucket name
        gcs_prefix: Prefix/folder path in GCS (e.g., 'calculator')
    """
    logger.info(f"Uploading to GCS bucket '{bucket_name}' with prefix '{gcs_prefix}'...")

    storage_client = storage.Client()
    bucket = storage_client.bucket(bucket_name)

    local_path = Path(local_path)
    files_uploaded = 0

    for file_path in local_path.rglob('*'):
        if file_path.is_file():
            relative_path = file_path.relative_to(local_path)
            gcs_path = "/".join(p for p in (gcs_prefix.strip("/"), relative_path.as_posix()) if p)

            blob = bucket.blob(gcs_path)
            blob.upload_from_filename(str(file_path))
            files_uploaded += 1
            logger.info(f"Uploaded: {gcs_path}")

    logger.info(f"Successfully uploaded {files_uploaded} files to GCS")
    logger.info(f"Set MODEL_ORIGIN=gs://{bucket_name}/{gcs_prefix.strip('/')}")


def main():
    parser = argparse.ArgumentParser(
        description="Write the add/subtract model artifacts and optionally upload them to Google Cloud Storage"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="./public",
        help="Directory to write the artifacts to (default: './public')"
    )
    parser.add_argument(
        "--bucket-name",
        type=str,
        default=None,
        help="GCS bucket name (or set GCS_BUCKET in .env); skips upload when unset"
    )
    parser.add_argument(
        "--gcs-prefix",
        type=str,
        default="calculator",
        help="Prefix/folder path in GCS (default: 'calculator')"
    )

    args = parser.parse_args()

    bucket_name = args.bucket_name or os.getenv('GCS_BUCKET')

    try:
        output_dir = export_artifacts(args.output_dir)

        if bucket_name:
            upload_directory_to_gcs(
                local_path=output_dir,
                bucket_name=bucket_name,
                gcs_prefix=args.gcs_prefix
            )

        logger.info("Process completed successfully!")

    except Exception as e:
        logger.error(f"Process failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
