DOMAIN = "acinfinity"
VERSION = "1.0.0"
MANUFACTURER = "AC Infinity"

DEFAULT_HOST = "http://www.acinfinityserver.com"

# Remote endpoints (all form-encoded POST)
API_URL_LOGIN = "/api/user/appUserLogin"
API_URL_GET_DEVICE_INFO_LIST_ALL = "/api/user/devInfoListAll"
API_URL_GET_DEV_MODE_SETTING = "/api/dev/getdevModeSettingList"
API_URL_ADD_DEV_MODE = "/api/dev/addDevMode"
API_URL_GET_DEV_SETTING = "/api/dev/getDevSetting"
API_URL_UPDATE_ADV_SETTING = "/api/dev/updateAdvSetting"

USER_AGENT = "ACController/1.9.7 (com.acinfinity.humiture; build:533; iOS 18.5.0) Alamofire/5.10.2"
# The mode-settings read on older controllers only answers to the older app build
LEGACY_USER_AGENT = "ACController/1.8.2 (com.acinfinity.humiture; build:489; iOS 16.5.1) Alamofire/5.4.4"
CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"
APP_VERSION = "1.9.7"
MIN_VERSION = "3.5"
PHONE_TYPE = "1"

# Application status codes carried in the JSON body
CODE_OK = 200
CODE_INVALID_CREDENTIALS = 10001
# Rejections that mean "try again later" (rate limit / transient save failure)
RETRYABLE_CODES: frozenset[int] = frozenset({429, 100001})
RETRYABLE_MESSAGE_MARKERS: tuple[str, ...] = ("save failed", "too frequent", "rate limit", "try again")

PASSWORD_MAX_LENGTH = 25
REQUEST_TIMEOUT = 15  # seconds

# Polling
DEFAULT_POLL_INTERVAL = 10    # seconds
MIN_POLL_INTERVAL = 5
MAX_POLL_INTERVAL = 600
POLL_RETRY_DELAY = 30         # seconds between polls after a failed one

# Command gateway
REQUEST_DELAY = 1.5           # minimum gap after a completed mutating request
MAX_RETRIES = 5
RETRY_BASE_DELAY = 2.0
RETRY_MAX_DELAY = 30.0

# Hardware
CONTROLLER_UIS_69_PRO = 11
CONTROLLER_UIS_69_PRO_PLUS = 18
CONTROLLER_UIS_89_AI_PLUS = 20
NEW_FRAMEWORK_DEVICE_TYPES: frozenset[int] = frozenset({CONTROLLER_UIS_89_AI_PLUS})
LEGACY_DEVICE_TYPES: frozenset[int] = frozenset({CONTROLLER_UIS_69_PRO, CONTROLLER_UIS_69_PRO_PLUS})
CONTROLLER_MODELS: dict[int, str] = {
    CONTROLLER_UIS_69_PRO: "UIS Controller 69 Pro",
    CONTROLLER_UIS_69_PRO_PLUS: "UIS Controller 69 Pro+",
    CONTROLLER_UIS_89_AI_PLUS: "UIS Controller 89 AI+",
}

NO_LOAD_RESISTANCE = 65535
SCHEDULE_DISABLED_VALUE = 65535
MAX_PORT_SPEED = 10
CO2_ABNORMAL_THRESHOLD = 1000  # ppm

# Config entry keys
CONF_ENTRY_NAME = "entry_name"
CONF_EMAIL = "email"
CONF_PASSWORD = "password"
CONF_HOST = "host"
CONF_POLLING_INTERVAL = "polling_interval"
CONF_EXPOSE_PORTS = "expose_ports"
CONF_EXPOSE_SENSORS = "expose_sensors"
CONF_DEBUG = "debug"
CONF_TEMPLATE_VERSION = "template_version"

# Port mode-settings fields
KEY_DEV_ID = "devId"
KEY_MODE_SET_ID = "modeSetid"
KEY_EXTERNAL_PORT = "externalPort"
KEY_ON_SPEED = "onSpead"
KEY_ON_SELF_SPEED = "onSelfSpead"
KEY_OFF_SPEED = "offSpead"
KEY_AT_TYPE = "atType"
KEY_DEV_NAME = "devName"
KEY_VPD_STATUS = "vpdstatus"
KEY_VPD_NUMS = "vpdnums"

# Fields the mode-settings endpoint rejects when echoed back
MODE_SETTINGS_REMOVED_FIELDS: frozenset[str] = frozenset({"devMacAddr", "ipcSetting", "devSetting"})
MODE_SETTINGS_INT_FIELDS: tuple[str, ...] = (KEY_DEV_ID, KEY_MODE_SET_ID)
MODE_SETTINGS_ZERO_DEFAULTS: tuple[str, ...] = (KEY_VPD_STATUS, KEY_VPD_NUMS)

# Advanced (controller) settings
ADVANCED_SETTINGS_REMOVED_FIELDS: frozenset[str] = frozenset({
    "setId",
    "devMacAddr",
    "portResistance",
    "devTimeZone",
    "sensorSetting",
    "sensorTransBuff",
    "subDeviceVersion",
    "secFucReportTime",
    "updateAllPort",
    "calibrationTime",
})
ADVANCED_SETTINGS_STRING_FIELDS: tuple[str, ...] = (
    "sensorTransBuffStr",
    "sensorSettingStr",
    "portParamData",
    "paramSensors",
)
ADVANCED_SETTINGS_ZERO_DEFAULTS: tuple[str, ...] = (
    "sensorOneType",
    "isShare",
    "targetVpdSwitch",
    "sensorTwoType",
    "zoneSensorType",
)

# Static mode-settings payload accepted by new-framework controllers.
# "{dev_id}", "{port}" and "{speed}" are filled in per request. There is no
# modeSetid field; the official app omits it too.
_SETTINGS_TEMPLATE_V1: dict[str, str] = {
    "acitveTimerOff": "0",
    "acitveTimerOn": "0",
    "activeCycleOff": "0",
    "activeCycleOn": "0",
    "activeHh": "0",
    "activeHt": "0",
    "activeHtVpd": "0",
    "activeHtVpdNums": "0",
    "activeLh": "0",
    "activeLt": "0",
    "activeLtVpd": "0",
    "activeLtVpdNums": "0",
    "atType": "2",
    "co2FanHighSwitch": "0",
    "co2FanHighValue": "0",
    "co2LowSwitch": "0",
    "co2LowValue": "0",
    "devHh": "0",
    "devHt": "0",
    "devHtf": "32",
    "devId": "{dev_id}",
    "devLh": "0",
    "devLt": "0",
    "devLtf": "32",
    "devMacAddr": "",
    "ecOrTds": "0",
    "ecTdsLowSwitchEc": "0",
    "ecTdsLowSwitchTds": "0",
    "ecTdsLowValueEcMs": "1",
    "ecTdsLowValueEcUs": "0",
    "ecTdsLowValueTdsPpm": "0",
    "ecTdsLowValueTdsPpt": "1",
    "ecUnit": "0",
    "externalPort": "{port}",
    "hTrend": "0",
    "humidity": "0",
    "isOpenAutomation": "0",
    "masterPort": "0",
    "modeType": "0",
    "moistureLowSwitch": "0",
    "moistureLowValue": "0",
    "offSpead": "0",
    "onSelfSpead": "{speed}",
    "onSpead": "{speed}",
    "onlyUpdateSpeed": "0",
    "phHighSwitch": "0",
    "phHighValue": "0",
    "phLowSwitch": "0",
    "phLowValue": "0",
    "schedEndtTime": "65535",
    "schedStartTime": "65535",
    "settingMode": "0",
    "speak": "0",
    "surplus": "0",
    "tTrend": "0",
    "targetHumi": "0",
    "targetHumiSwitch": "0",
    "targetTSwitch": "0",
    "targetTemp": "0",
    "targetTempF": "32",
    "targetVpd": "0",
    "targetVpdSwitch": "0",
    "tdsUnit": "0",
    "temperature": "0",
    "temperatureF": "0",
    "trend": "0",
    "unit": "0",
    "vpdSettingMode": "0",
    "waterLevelLowSwitch": "0",
    "waterTempHighSwitch": "0",
    "waterTempHighValue": "0",
    "waterTempHighValueF": "32",
    "waterTempLowSwitch": "0",
    "waterTempLowValue": "0",
    "waterTempLowValueF": "32",
}

# template version → field → default. Bump the version when the app capture changes.
SETTINGS_TEMPLATES: dict[int, dict[str, str]] = {
    1: _SETTINGS_TEMPLATE_V1,
}
DEFAULT_TEMPLATE_VERSION = 1
