import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore import Client as FirestoreClient

from concept_engine.config import ConfigurationError, Settings

logger = logging.getLogger(__name__)


def initialize_firebase(settings: Settings) -> None:
  """Initializes the Firebase Admin SDK."""
  if firebase_admin._apps:
    return

  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return

  if settings.firebase_service_account_json_path:
    cred = credentials.Certificate(settings.firebase_service_account_json_path)
    firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
  else:
    # Use default credentials (e.g. Google Application Default Credentials)
    firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
  logger.info("Firebase Admin SDK initialized for project %s.", settings.firebase_project_id)


def get_firestore_client(settings: Settings) -> FirestoreClient:
  """Returns a Firestore client instance. Lazily initializes if needed."""
  if not firebase_admin._apps:
    initialize_firebase(settings)

  if not firebase_admin._apps:
    raise ConfigurationError("FIREBASE_PROJECT_ID must be set to use the Firestore job store.")

  return firestore.client()
