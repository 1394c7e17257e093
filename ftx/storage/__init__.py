"""Random-access file reading and writing, and receiver-side resume state."""