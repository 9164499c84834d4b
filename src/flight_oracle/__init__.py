"""flight_oracle - off-chain oracle for the FlightSurety dapp."""

__version__ = "0.1.0"
