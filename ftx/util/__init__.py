"""CRC-32C checksums and BLAKE3 hashing used by the protocol."""