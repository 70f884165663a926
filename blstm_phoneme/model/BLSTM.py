import torch
import torch.nn as nn
from contextlib import contextmanager
from typing import Optional, Tuple

LSTMState = Tuple[torch.Tensor, torch.Tensor]


class BLSTM(nn.Module):
    def __init__(self, input_size=26, hidden_size=93):
        """
        Bidirectional LSTM built from two independent unidirectional layers.

        The forward layer reads the utterance left-to-right, the backward layer
        reads it right-to-left; their outputs are concatenated per time step.
        Unlike nn.LSTM(bidirectional=True), the hidden/cell state of each
        direction is kept between calls until reset() is called.

        Args:
            input_size: Size of each frame's feature vector (26 for TIMIT MFCCs)
            hidden_size: LSTM cells per direction (93)
        """
        super(BLSTM, self).__init__()

        self.input_size = input_size
        self.hidden_size = hidden_size

        self.forward_lstm = nn.LSTM(input_size, hidden_size, batch_first=True)
        self.backward_lstm = nn.LSTM(input_size, hidden_size, batch_first=True)

        # Output size is 2 * hidden_size due to bidirectionality
        self.output_size = 2 * hidden_size

        self.forward_state: Optional[LSTMState] = None
        self.backward_state: Optional[LSTMState] = None

        self._initialize_forget_bias()

    def _initialize_forget_bias(self):
        """Start the forget gates open (total bias 1), as in Graves' LSTM setup."""
        for lstm in (self.forward_lstm, self.backward_lstm):
            for name, param in lstm.named_parameters():
                if 'bias' not in name:
                    continue
                # PyTorch gate layout: input, forget, cell, output
                with torch.no_grad():
                    param[self.hidden_size:2 * self.hidden_size].fill_(
                        1.0 if name.startswith('bias_ih') else 0.0
                    )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Run both directions over an utterance.

        Batched input must hold utterances of equal length: the backward
        direction flips the whole time axis, so padding would be read first.
        The carried state is sized to the batch, so call reset() (or use
        fresh_state()) before changing batch size.

        Args:
            x: Frames [seq_len, input_size] or [batch_size, seq_len, input_size]

        Returns:
            Concatenated outputs [..., seq_len, 2*hidden_size], time-aligned
            with the input
        """
        if x.size(-1) != self.input_size:
            raise ValueError(
                f"Expected {self.input_size} features per frame, got {x.size(-1)}"
            )

        unbatched = x.dim() == 2
        if unbatched:
            x = x.unsqueeze(0)

        if self.forward_state is not None and self.forward_state[0].size(1) != x.size(0):
            raise ValueError(
                f"Carried state is for batch size {self.forward_state[0].size(1)}, "
                f"got {x.size(0)}; reset() before changing batch size"
            )

        forward_out, forward_state = self.forward_lstm(x, self.forward_state)

        # Feed the reversed utterance, then flip outputs back to original time order
        reversed_x = torch.flip(x, dims=[1])
        backward_out, backward_state = self.backward_lstm(reversed_x, self.backward_state)
        backward_out = torch.flip(backward_out, dims=[1])

        self.forward_state = tuple(s.detach() for s in forward_state)
        self.backward_state = tuple(s.detach() for s in backward_state)

        output = torch.cat([forward_out, backward_out], dim=-1)

        if unbatched:
            output = output.squeeze(0)
        return output

    def reset(self):
        """Drop the carried state so the next call starts from zeros."""
        self.forward_state = None
        self.backward_state = None

    def has_state(self) -> bool:
        return self.forward_state is not None or self.backward_state is not None

    @contextmanager
    def fresh_state(self):
        """Run the enclosed forward passes from zero state and reset afterwards, even on error."""
        self.reset()
        try:
            yield self
        finally:
            self.reset()
