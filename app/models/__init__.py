from app.models.hall import Hall, HallImage
from app.models.availability import HallAvailability, HallAvailabilityEvent
