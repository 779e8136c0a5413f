from .user import User, ROLE_CHOICES
from .health_parameter import HealthParameter, PARAMETER_TYPES
from .parameter_threshold import ParameterThreshold
