"""Generate C function bodies for ONNX operator nodes: Elementwise, Gemm, MatMulInteger, ConvTranspose, Split, LSTM and Pad."""

__version__ = "0.1.0"