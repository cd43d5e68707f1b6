ERRORS = {
  "E_DISCONNECTED": "Device disconnected",
  "E_TIMEOUT": "Device did not respond in time",
  "E_OUT_OF_RANGE": "Read outside settings blob bounds",
  "E_PROTOCOL_MISMATCH": "Device response not understood",
  "E_FORMAT_MISMATCH": "Unsupported settings format or firmware version",
  "E_CORRUPT": "Settings blob checksum mismatch",
}
