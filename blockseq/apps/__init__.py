"""Demo applications for blockseq."""
