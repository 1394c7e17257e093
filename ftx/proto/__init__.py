"""Wire protocol: frame types, frame headers, streaming decoding and message payloads."""