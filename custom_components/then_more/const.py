DOMAIN = "then_more"

##### capabilities
CAPABILITY_ONOFF = "onoff"
CAPABILITY_DIM = "dim"
CAPABILITIES = (CAPABILITY_ONOFF, CAPABILITY_DIM)

# entity domains that can be switched on and off
ONOFF_DOMAINS = ("light", "switch", "fan", "input_boolean")
DIM_DOMAIN = "light"


##### service constants
SERVICE_TURN_ON_FOR = "turn_on_for"
SERVICE_DIM_FOR = "dim_for"
SERVICE_CANCEL_TIMER = "cancel_timer"
SERVICE_IS_TIMER_RUNNING = "is_timer_running"
SERVICE_SEARCH_DEVICES = "search_devices"

# service fields
ATTR_TIME_ON = "time_on"
ATTR_IGNORE_WHEN_ON = "ignore_when_on"
ATTR_OVERRULE_LONGER_TIMEOUTS = "overrule_longer_timeouts"
ATTR_BRIGHTNESS_LEVEL = "brightness_level"
ATTR_RESTORE = "restore"
ATTR_QUERY = "query"
ATTR_CAPABILITY = "capability"


##### event constants
EVENT_TIMER_STARTED = f"{DOMAIN}_timer_started"
EVENT_TIMER_DELETED = f"{DOMAIN}_timer_deleted"

# reasons carried by timer_deleted events
REASON_EXPIRED = "expired"
REASON_CANCELLED = "cancelled"
REASON_MANUAL_OFF = "manual_off"
REASON_SHUTDOWN = "shutdown"


##### snapshot keys
DEVICE = "device"
OFF_TIME = "off_time"
CAPABILITY = "capability"
VALUE = "value"
OLD_VALUE = "old_value"
CREATED_AT = "created_at"
TIMERS = "timers"


##### HA constants
SENSOR = "sensor"
BINARY_SENSOR = "binary_sensor"
