# detkit

detkit holds the image preparation and result decoding around a family of
neural-network vision models:

- YOLOv3/v4-style Darknet detectors and a QR-code detector (`detkit.darknet`)
- YOLOv5-Lite and a licence-plate corner detector (`detkit.yolov5`)
- YOLOv5 face detection with five landmarks (`detkit.yolov5_face`)
- YOLOv7 (`detkit.yolov7`)
- YOLOv8 face detection with distribution-focal box regression (`detkit.yolov8_face`)
- PP-YOLOE detection (`detkit.ppyoloe`) and PP-YOLOE + HRNet human pose
  estimation (`detkit.pose_estimator`, with heatmap helpers in `detkit.pose`)
- YOLACT instance segmentation (`detkit.yolact`)
- Robust Video Matting with recurrent state kept across frames (`detkit.matting`)

Images are NumPy arrays in BGR channel order, shaped `(height, width, 3)`,
`uint8`. Drawing is done in place on those arrays.

## Installation

```
pip install detkit
```

It depends on NumPy and Pillow only.

## Running a model

detkit does not ship an inference engine. Each detector takes a `model`: a
callable that receives a list of prepared input arrays and returns a sequence
of the network's output arrays. Wrap whatever runtime you use in such a
callable.

```python
import numpy as np
from PIL import Image

from detkit.labels import load_class_names
from detkit.yolov7 import YoloV7

def model(inputs):
    ...  # run your network on inputs[0] and return its outputs

image = np.asarray(Image.open("dog.jpg").convert("RGB"))[:, :, ::-1].copy()
detector = YoloV7(model, 0.3, 0.5, load_class_names("coco.names"), 640, 640)
boxes = detector.detect(image)
detector.draw(image, boxes)
```

Every detector class has a `detect` method returning its results and a `draw`
method that paints them onto an image in place:

| Class | Module | `detect` returns |
| --- | --- | --- |
| `DarknetYolo`, `QRCodeYolo` | `detkit.darknet` | `Box` list |
| `YoloV5Lite` | `detkit.yolov5` | `Box` list |
| `PlateCornerDetector` | `detkit.yolov5` | `CornerBox` list (box plus four corners) |
| `YoloV5Face` | `detkit.yolov5_face` | `FaceDetection` list |
| `YoloV7` | `detkit.yolov7` | `Box` list |
| `YoloV8Face` | `detkit.yolov8_face` | `FaceDetection` list |
| `PPYoloE` | `detkit.ppyoloe` | `Detection` list |
| `HumanPoseEstimator` | `detkit.pose_estimator` | `PersonPose` list (detection plus keypoints) |
| `Yolact` | `detkit.yolact` | `InstanceMask` list (box, class, score, mask) |

The docstring of each class states the inputs it passes to the model and the
outputs it expects back. A few particulars:

- `DarknetYolo` takes a `NetConfig`; `YOLO_NETS` holds four ready-made
  configurations (yolov3, yolov4, yolo-fastest, yolobile). Without
  `class_names` it reads the configuration's class file, and labels by score
  only when that file is missing. After `detect` its `inference_time_ms`
  holds how long the model call took, which `draw` writes on the frame.
- `YoloV5Face` decodes landmarks in one of two ways, chosen by
  `LandmarkMode.RAW` or `LandmarkMode.SIGMOID`.
- `PPYoloE` and `YoloV7` name a detection by its class index when no class
  names are given.
- `HumanPoseEstimator` takes two models: a person detector and a keypoint
  heatmap model run on each person's crop.

### Video matting

`RobustVideoMatting` keeps the model's four recurrent state tensors between
calls, so frames of one video are passed in order:

```python
from detkit.matting import RobustVideoMatting

matting = RobustVideoMatting(model)
for frame in frames:
    content = matting.detect(frame, downsample_ratio=0.25)
    merged = content.merge_mat      # foreground over a fixed background colour
matting.reset()                     # before starting another video
```

`detect` returns a `MattingContent` with `fgr_mat` (BGR `uint8`), `pha_mat`
(alpha as floats from 0 to 1), `merge_mat` and `flag`. An empty image gives a
content whose `flag` is `False` and leaves the state as it was.

## Building blocks

The decoding steps are plain functions, usable without any model:

```python
from detkit.boxes import Box, nms

kept = nms([Box(0, 0, 10, 10, 0.9, 0), Box(1, 1, 11, 11, 0.8, 0)], 0.5)
```

- `detkit.boxes`: `Box`, `Rect`, `sigmoid`, `nms` (greedy suppression of
  corner boxes) and `nms_boxes` (score filtering, optional `top_k` and `eta`,
  returning the kept indices of `Rect`s)
- `detkit.imaging`: `resize` with `Interpolation.NEAREST`, `LINEAR` or
  `AREA`; `letterbox` returning a `Letterbox` with the content size and
  padding; `to_chw`; `blob_from_image`
- `detkit.drawing`: `draw_rectangle`, `draw_circle`, `draw_text`, `blend_mask`
- `detkit.labels`: `load_class_names`, the `COCO_CLASSES` names (background
  first) and a `COLORS` table with one colour per class
- `detkit.pose`: `get_max_preds`, `get_final_preds`, `get_affine_transform`,
  `transform_preds`, `box_to_center_scale` and smaller helpers
- Per-model decoders: `darknet.postprocess`, `yolov5.decode_yolov5_lite`,
  `yolov5.decode_plate_corners`, `yolov5_face.decode_faces`,
  `yolov7.decode_yolov7`, `yolov8_face.generate_proposals`,
  `ppyoloe.decode_ppyoloe`, `yolact.make_priors`, `yolact.decode_boxes`,
  `matting.generate_matting`

## What detkit does not do

- It runs no networks and loads no model files; the `model` callable is
  yours to supply.
- It reads no image or video files and opens no windows; pass it arrays and
  show or save the results with whatever library you like.
- It has no command-line program.

## Tests

```
pip install "detkit[test]"
pytest
```