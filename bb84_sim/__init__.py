from .qubit import Basis, QuantumBit, generate_basis, generate_bit, generate_bit_sequence
from .quantum_channel import (
    MeasurementResult,
    PhotonPacket,
    QuantumChannel,
    encode,
    measure,
    measure_all,
)
from .attacks import InterceptResendAttack, InterceptedPhoton
from .sifting import SiftResult, calculate_qber, finalize_key, sift
from .otp import DECRYPTION_FAILED, bits_to_hex, decrypt, encrypt
from .bb84 import BB84Protocol, RoundResult, QBER_ABORT_THRESHOLD, run_protocol
