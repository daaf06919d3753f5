"""Individual host checks, each exposing a run() function."""