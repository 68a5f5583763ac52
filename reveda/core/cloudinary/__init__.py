import cloudinary
import cloudinary.uploader
import cloudinary.exceptions
import logging
from reveda.config import settings

# Set up logger for this module
logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_IMAGE_BYTES = 2 * 1024 * 1024

def is_configured() -> bool:
    return all([settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret])

if is_configured():
    cloudinary.config(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret
    )

def upload_profile_image(file, user_id: int):
    """
    Uploads a profile image to Cloudinary and returns the URL.
    Returns None if Cloudinary is not configured or the upload fails.
    """
    if not is_configured():
        logger.error("Cloudinary is not configured; profile image upload skipped")
        return None
    try:
        result = cloudinary.uploader.upload(
            file,
            folder="profile_images",
            public_id=f"user_{user_id}",
            overwrite=True,
            resource_type="image"
        )
    except cloudinary.exceptions.Error as e:
        logger.error(f"Cloudinary API error during profile image upload: {str(e)}")
        return None
    secure_url = result.get("secure_url")
    if not secure_url:
        logger.error("Cloudinary upload result did not contain a secure_url.")
        return None
    logger.info(f"Uploaded profile image for user {user_id}: {secure_url}")
    return secure_url
